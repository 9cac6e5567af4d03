from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RowErrorCode(str, Enum):
    REQUIRED = "required"
    CATEGORY_NOT_FOUND = "category_not_found"
    SUBCATEGORY_NOT_FOUND = "subcategory_not_found"
    SUBCATEGORY_CATEGORY_MISMATCH = "subcategory_category_mismatch"
    INVALID_WEIGHT = "invalid_weight"
    MISSING_METAL_TYPE = "missing_metal_type"
    INVALID_PRICE = "invalid_price"
    INVALID_COMPARE_AT_PRICE = "invalid_compare_at_price"
    INVALID_STOCK = "invalid_stock"
    INSERTION_FAILED = "insertion_failed"


class RowError(BaseModel):
    """One problem with one spreadsheet row; ``row`` counts the header as row 1."""

    row: int
    field: str
    message: str
    code: RowErrorCode
    value: Any = None


class ImportResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    message: str
    validation_passed: bool
    total_rows: int
    success_count: int
    error_count: int
    errors: list[RowError]
    created_products: list[str] | None = None

    def to_response(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
