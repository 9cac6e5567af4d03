from app.schemas.category import (
    CategoryBase, CategoryCreate, CategoryUpdate, CategoryResponse,
    SubcategoryCreate, SubcategoryResponse,
)
from app.schemas.bulk_upload import ImportResult, RowError, RowErrorCode
