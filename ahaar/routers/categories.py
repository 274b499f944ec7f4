from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ahaar.core.config import API_PREFIX
from ahaar.core.database import get_db
from ahaar.deps import get_active_principal, list_params, require_active_subscription
from ahaar.models.category import Category
from ahaar.schemas.common import DeleteIds
from ahaar.services.access_control import Principal, require_brand
from ahaar.services.resources import (
    ListParams,
    apply_changes,
    changed_fields,
    delete_by_external_ids,
    ensure_unique,
    generate_external_id,
    get_owned,
    iso,
    list_scoped,
    stamp_created,
)
from ahaar.services.validation import require_field, validate_string
from ahaar.utils.slug import slugify

router = APIRouter(
    prefix=f"{API_PREFIX}/categories",
    tags=["categories"],
    dependencies=[Depends(require_active_subscription)],
)


class CategoryIn(BaseModel):
    category: Optional[str] = None


def _category_to_dict(category: Category) -> dict:
    return {
        "id": category.id,
        "category_id": category.category_id,
        "category": category.category,
        "category_slug": category.category_slug,
        "brand": category.brand_id,
        "createdBy": category.created_by,
        "createdAt": iso(category.created_at),
        "updatedBy": category.updated_by,
        "updatedAt": iso(category.updated_at),
    }


def _category_name(value: Optional[str]) -> str:
    require_field(value, "Category name is required")
    return validate_string(value, "Category Name", 2, 50)


@router.post("/create-category")
def create_category(
    payload: CategoryIn,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    brand_id = require_brand(principal)
    name = _category_name(payload.category)
    ensure_unique(
        db,
        Category,
        Category.brand_id == brand_id,
        Category.category == name,
        message="Category already exists",
    )

    category = Category(
        category_id=generate_external_id(db, Category),
        category=name,
        category_slug=slugify(name),
        brand_id=brand_id,
    )
    stamp_created(category, principal)
    db.add(category)
    db.commit()
    db.refresh(category)
    return {"success": True, "message": "New category created", "data": _category_to_dict(category)}


@router.get("/get-all")
def list_categories(
    params: ListParams = Depends(list_params),
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    return list_scoped(
        db,
        principal,
        Category,
        params=params,
        search_columns=(Category.category, Category.category_slug),
        serializer=_category_to_dict,
        message="Categories retrieved successfully",
        order_by=(Category.category.asc(),),
    )


@router.patch("/update-category/{category_pk}")
def update_category(
    category_pk: int,
    payload: CategoryIn,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    category = get_owned(db, Category, category_pk, principal, message="Category not found")
    name = _category_name(payload.category)
    changes = changed_fields(category, {"category": name})
    ensure_unique(
        db,
        Category,
        Category.brand_id == category.brand_id,
        Category.category == name,
        message="Category already exists",
        exclude_id=category.id,
    )
    changes["category_slug"] = slugify(name)
    apply_changes(category, changes, principal)
    db.commit()
    db.refresh(category)
    return {"success": True, "message": "Category updated", "data": _category_to_dict(category)}


@router.delete("/delete-category")
def delete_categories(
    payload: DeleteIds,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    delete_by_external_ids(db, Category, Category.category_id, payload.ids, principal)
    return {"success": True, "message": "Category deleted successfully"}
