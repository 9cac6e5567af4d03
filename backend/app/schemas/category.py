from datetime import datetime

from pydantic import BaseModel, Field


class CategoryBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    image: str | None = None
    is_active: bool = True
    display_order: int = 0


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    image: str | None = None
    is_active: bool | None = None
    display_order: int | None = None


class CategoryResponse(CategoryBase):
    id: int
    slug: str
    created_at: datetime

    model_config = {"from_attributes": True}


class SubcategoryCreate(CategoryBase):
    pass


class SubcategoryResponse(CategoryBase):
    id: int
    slug: str
    category_id: int
    created_at: datetime

    model_config = {"from_attributes": True}
