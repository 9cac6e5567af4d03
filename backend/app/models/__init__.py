from app.models.category import Category, Subcategory
from app.models.product import Product
from app.models.asset import Asset
from app.models.metal_rate import MetalRate

__all__ = [
    "Category",
    "Subcategory",
    "Product",
    "Asset",
    "MetalRate",
]
