from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.models.category import Category, Subcategory
from app.schemas.category import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    SubcategoryCreate,
    SubcategoryResponse,
)
from app.services.taxonomy import conflicting_entry, slugify

router = APIRouter(prefix="/categories", tags=["categories"])


async def _get_category(db: AsyncSession, category_id: int) -> Category:
    result = await db.execute(select(Category).where(Category.id == category_id))
    category = result.scalar_one_or_none()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


async def _ensure_unique_category(db: AsyncSession, name: str, exclude_id: int | None = None) -> None:
    # the bulk importer resolves categories by case-folded name or slug, so both share one key space
    result = await db.execute(select(Category))
    if conflicting_entry(result.scalars().all(), name, slugify(name), exclude_id):
        raise HTTPException(status_code=409, detail="Category with this name or slug already exists")


async def _ensure_unique_subcategory(
    db: AsyncSession, category_id: int, name: str, exclude_id: int | None = None
) -> None:
    result = await db.execute(select(Subcategory).where(Subcategory.category_id == category_id))
    if conflicting_entry(result.scalars().all(), name, slugify(name), exclude_id):
        raise HTTPException(
            status_code=409, detail="Subcategory with this name or slug already exists in this category"
        )


@router.get("/", response_model=list[CategoryResponse])
async def list_categories(
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
):
    query = select(Category).order_by(Category.display_order, Category.name)
    if not include_inactive:
        query = query.where(Category.is_active.is_(True))
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(category_id: int, db: AsyncSession = Depends(get_db)):
    return await _get_category(db, category_id)


@router.post("/", response_model=CategoryResponse, status_code=201)
async def create_category(data: CategoryCreate, db: AsyncSession = Depends(get_db)):
    name = data.name.strip()
    await _ensure_unique_category(db, name)
    category = Category(**data.model_dump(exclude={"name"}), name=name, slug=slugify(name))
    db.add(category)
    await db.flush()
    await db.refresh(category)
    return category


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(category_id: int, data: CategoryUpdate, db: AsyncSession = Depends(get_db)):
    category = await _get_category(db, category_id)
    updates = data.model_dump(exclude_unset=True)
    if updates.get("name"):
        updates["name"] = updates["name"].strip()
        await _ensure_unique_category(db, updates["name"], exclude_id=category.id)
        updates["slug"] = slugify(updates["name"])
    for key, value in updates.items():
        setattr(category, key, value)
    await db.flush()
    await db.refresh(category)
    return category


@router.delete("/{category_id}", status_code=204)
async def delete_category(category_id: int, db: AsyncSession = Depends(get_db)):
    category = await _get_category(db, category_id)
    await db.delete(category)


@router.get("/{category_id}/subcategories", response_model=list[SubcategoryResponse])
async def list_subcategories(category_id: int, db: AsyncSession = Depends(get_db)):
    await _get_category(db, category_id)
    result = await db.execute(
        select(Subcategory)
        .where(Subcategory.category_id == category_id)
        .order_by(Subcategory.display_order, Subcategory.name)
    )
    return result.scalars().all()


@router.post("/{category_id}/subcategories", response_model=SubcategoryResponse, status_code=201)
async def create_subcategory(category_id: int, data: SubcategoryCreate, db: AsyncSession = Depends(get_db)):
    await _get_category(db, category_id)
    name = data.name.strip()
    await _ensure_unique_subcategory(db, category_id, name)
    subcategory = Subcategory(
        **data.model_dump(exclude={"name"}), name=name, slug=slugify(name), category_id=category_id
    )
    db.add(subcategory)
    await db.flush()
    await db.refresh(subcategory)
    return subcategory
