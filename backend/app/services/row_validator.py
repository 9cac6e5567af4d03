"""
Row validation for bulk product imports.

``validate_row`` is a pure function from one RawRow to the complete list of its
errors: every rule runs even when an earlier one failed, so a row that breaks
three rules reports three errors. ``resolve_row`` turns a row that passed into a
typed ResolvedRow and must only be called once the whole batch is clean.

Pricing is either fixed (``price``) or weight based (``useDynamicPricing`` with
``weightInGrams`` and ``metalType``). Only the selected mode's fields are
required; filling in the other mode's fields never stands in for them.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from app.schemas.bulk_upload import RowError, RowErrorCode
from app.services.spreadsheet import ABSENT, CellValue, RawRow
from app.services.taxonomy import TaxonomyIndex, slugify

logger = logging.getLogger(__name__)

TRUTHY_STRINGS = {"true", "yes", "1"}


def parse_boolean(value: CellValue) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY_STRINGS
    if isinstance(value, (int, float)):
        return value == 1
    return False


def parse_number(value: CellValue) -> int | float | None:
    """Native numbers and numeric-looking text; anything else is None."""
    if isinstance(value, bool) or value is ABSENT:
        return None
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def text_value(value: CellValue) -> str | None:
    if value is ABSENT:
        return None
    text = str(value).strip()
    return text or None


def raw_value(value: CellValue):
    return None if value is ABSENT else value


@dataclass(frozen=True)
class ImageUrl:
    url: str


@dataclass(frozen=True)
class ImageFile:
    filename: str


ImageRef = ImageUrl | ImageFile


def is_absolute_url(value: str) -> bool:
    parts = urlsplit(value)
    return bool(parts.scheme and parts.netloc)


def parse_image_refs(value: CellValue) -> list[ImageRef]:
    text = text_value(value)
    if text is None:
        return []
    refs: list[ImageRef] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        refs.append(ImageUrl(part) if is_absolute_url(part) else ImageFile(part))
    return refs


def parse_filter_values(value: CellValue, ordinal: int | None = None) -> dict:
    text = text_value(value)
    if text is None:
        return {}
    try:
        parsed = json.loads(text)
    except ValueError:
        logger.warning(f"Row {ordinal}: filterValues is not valid JSON, ignoring")
        return {}
    if not isinstance(parsed, dict):
        logger.warning(f"Row {ordinal}: filterValues is not a JSON object, ignoring")
        return {}
    return parsed


@dataclass
class ResolvedRow:
    ordinal: int
    name: str
    slug: str
    category_id: str
    subcategory_id: str
    use_dynamic_pricing: bool
    price: float | None = None
    compare_at_price: float | None = None
    weight_in_grams: float | None = None
    metal_type: str | None = None
    description: str | None = None
    short_description: str | None = None
    sku: str | None = None
    stock: int = 0
    is_active: bool = True
    is_featured: bool = False
    display_order: int = 0
    images: list[ImageRef] = field(default_factory=list)
    filter_values: dict = field(default_factory=dict)


def validate_row(row: RawRow, taxonomy: TaxonomyIndex) -> list[RowError]:
    errors: list[RowError] = []

    def add(field_name: str, message: str, code: RowErrorCode, value=None) -> None:
        errors.append(RowError(row=row.ordinal, field=field_name, message=message, code=code, value=value))

    if text_value(row.get("name")) is None:
        add("name", "Name is required", RowErrorCode.REQUIRED)

    category_name = text_value(row.get("category"))
    category = None
    if category_name is None:
        add("category", "Category is required", RowErrorCode.REQUIRED)
    else:
        category = taxonomy.category(category_name)
        if category is None:
            add("category", f'Category "{category_name}" not found', RowErrorCode.CATEGORY_NOT_FOUND, category_name)

    subcategory_name = text_value(row.get("subcategory"))
    if subcategory_name is None:
        add("subcategory", "Subcategory is required", RowErrorCode.REQUIRED)
    else:
        subcategory = taxonomy.subcategory(subcategory_name, category.id if category else None)
        if subcategory is None:
            add(
                "subcategory",
                f'Subcategory "{subcategory_name}" not found',
                RowErrorCode.SUBCATEGORY_NOT_FOUND,
                subcategory_name,
            )
        elif category is not None and subcategory.category_id != category.id:
            add(
                "subcategory",
                f'Subcategory "{subcategory_name}" does not belong to category "{category_name}"',
                RowErrorCode.SUBCATEGORY_CATEGORY_MISMATCH,
                subcategory_name,
            )

    if parse_boolean(row.get("useDynamicPricing")):
        weight = parse_number(row.get("weightInGrams"))
        if weight is None or weight <= 0:
            add(
                "weightInGrams",
                "Valid weight (> 0) is required for dynamic pricing",
                RowErrorCode.INVALID_WEIGHT,
                raw_value(row.get("weightInGrams")),
            )
        if text_value(row.get("metalType")) is None:
            add(
                "metalType",
                "Metal type is required for dynamic pricing",
                RowErrorCode.MISSING_METAL_TYPE,
                raw_value(row.get("metalType")),
            )
    else:
        price = parse_number(row.get("price"))
        if price is None or price < 0:
            add(
                "price",
                "Valid price (>= 0) is required when not using dynamic pricing",
                RowErrorCode.INVALID_PRICE,
                raw_value(row.get("price")),
            )

    compare_at = row.get("compareAtPrice")
    if compare_at is not ABSENT:
        number = parse_number(compare_at)
        if number is None or number < 0:
            add("compareAtPrice", "Compare at price must be a number >= 0", RowErrorCode.INVALID_COMPARE_AT_PRICE, compare_at)

    stock = row.get("stock")
    if stock is not ABSENT:
        number = parse_number(stock)
        if number is None or number < 0:
            add("stock", "Stock must be a number >= 0", RowErrorCode.INVALID_STOCK, stock)

    return errors


def resolve_row(row: RawRow, taxonomy: TaxonomyIndex) -> ResolvedRow:
    name = text_value(row.get("name"))
    category = taxonomy.category(text_value(row.get("category")))
    subcategory = taxonomy.subcategory(text_value(row.get("subcategory")), category.id)
    dynamic = parse_boolean(row.get("useDynamicPricing"))

    weight = parse_number(row.get("weightInGrams"))
    stock = parse_number(row.get("stock"))
    display_order = parse_number(row.get("displayOrder"))
    is_active = row.get("isActive")
    is_featured = row.get("isFeatured")

    return ResolvedRow(
        ordinal=row.ordinal,
        name=name,
        slug=slugify(name),
        category_id=category.id,
        subcategory_id=subcategory.id,
        use_dynamic_pricing=dynamic,
        price=None if dynamic else parse_number(row.get("price")),
        compare_at_price=parse_number(row.get("compareAtPrice")),
        weight_in_grams=weight if weight is not None and weight > 0 else None,
        metal_type=text_value(row.get("metalType")),
        description=text_value(row.get("description")),
        short_description=text_value(row.get("shortDescription")),
        sku=text_value(row.get("sku")),
        stock=int(stock) if stock is not None else 0,
        is_active=parse_boolean(is_active) if is_active is not ABSENT else True,
        is_featured=parse_boolean(is_featured) if is_featured is not ABSENT else False,
        display_order=int(display_order) if display_order is not None else 0,
        images=parse_image_refs(row.get("images")),
        filter_values=parse_filter_values(row.get("filterValues"), row.ordinal),
    )
