"""
Weight-based jewellery pricing.

    metal cost     = (rate per 10 g / 10) * weight
    making charges = making charge per gram * weight
    GST            = subtotal * gst% / 100

Every component is computed from unrounded inputs and rounded to 2 places.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class MetalRateData:
    metal_type: str
    rate_per_ten_grams: Decimal
    making_charge_per_gram: Decimal
    gst_percentage: Decimal


@dataclass(frozen=True)
class PriceBreakdown:
    metal_cost: Decimal
    making_charges: Decimal
    subtotal: Decimal
    gst_amount: Decimal
    final_price: Decimal


def _round(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def calculate_price(weight_in_grams: Decimal | float, rate: MetalRateData) -> PriceBreakdown:
    weight = Decimal(str(weight_in_grams))
    metal_cost = Decimal(rate.rate_per_ten_grams) / 10 * weight
    making_charges = Decimal(rate.making_charge_per_gram) * weight
    subtotal = metal_cost + making_charges
    gst_amount = subtotal * Decimal(rate.gst_percentage) / 100
    return PriceBreakdown(
        metal_cost=_round(metal_cost),
        making_charges=_round(making_charges),
        subtotal=_round(subtotal),
        gst_amount=_round(gst_amount),
        final_price=_round(subtotal + gst_amount),
    )
