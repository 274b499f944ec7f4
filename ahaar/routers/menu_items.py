from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ahaar.core.config import API_PREFIX
from ahaar.core.database import get_db
from ahaar.core.errors import ValidationError
from ahaar.deps import get_active_principal, list_params, require_active_subscription
from ahaar.models.category import Category
from ahaar.models.menu_item import MenuItem
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
from ahaar.services.validation import require_field, validate_positive_number, validate_string
from ahaar.utils.slug import slugify

router = APIRouter(
    prefix=f"{API_PREFIX}/menu-items",
    tags=["menu-items"],
    dependencies=[Depends(require_active_subscription)],
)

PRICE_SORTS = {
    "high-to-low": MenuItem.item_price.desc(),
    "low-to-high": MenuItem.item_price.asc(),
}


class MenuItemCreate(BaseModel):
    item_name: Optional[str] = None
    category: Optional[str] = None
    item_price: Optional[float] = None


class MenuItemUpdate(BaseModel):
    item_name: Optional[str] = None
    category: Optional[str] = None
    item_price: Optional[float] = None
    discount: Optional[bool] = None


def _item_to_dict(item: MenuItem) -> dict:
    return {
        "id": item.id,
        "item_id": item.item_id,
        "item_name": item.item_name,
        "item_slug": item.item_slug,
        "category": item.category,
        "discount": item.discount,
        "item_price": item.item_price,
        "brand": item.brand_id,
        "createdBy": item.created_by,
        "createdAt": iso(item.created_at),
        "updatedBy": item.updated_by,
        "updatedAt": iso(item.updated_at),
    }


def _existing_category(db: Session, brand_id: str, value: str) -> str:
    name = validate_string(value, "Category Name", 2, 100)
    category = (
        db.query(Category)
        .filter(Category.brand_id == brand_id, Category.category == name)
        .first()
    )
    if category is None:
        raise ValidationError("Category not found")
    return category.category


@router.post("/create-menu-item")
def create_menu_item(
    payload: MenuItemCreate,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    brand_id = require_brand(principal)
    require_field(payload.item_name, "Item name is required")
    require_field(payload.category, "Category is required")
    require_field(payload.item_price, "Item price is required")

    item_name = validate_string(payload.item_name, "Item Name", 2, 100)
    item_price = validate_positive_number(payload.item_price, "Item price")
    ensure_unique(
        db,
        MenuItem,
        MenuItem.brand_id == brand_id,
        MenuItem.item_name == item_name,
        message="Item already exists in this brand",
    )
    category = _existing_category(db, brand_id, payload.category)

    item = MenuItem(
        item_id=generate_external_id(db, MenuItem),
        item_name=item_name,
        item_slug=slugify(item_name),
        category=category,
        discount=True,
        item_price=item_price,
        brand_id=brand_id,
    )
    stamp_created(item, principal)
    db.add(item)
    db.commit()
    db.refresh(item)
    return {"success": True, "message": "Menu item created", "data": _item_to_dict(item)}


@router.get("/get-all")
def list_menu_items(
    params: ListParams = Depends(list_params),
    category: Optional[str] = Query(None, max_length=100),
    price: Optional[str] = Query(None),
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    extra = []
    if category and category.strip():
        extra.append(MenuItem.category.icontains(category.strip(), autoescape=True))

    return list_scoped(
        db,
        principal,
        MenuItem,
        params=params,
        search_columns=(MenuItem.item_name, MenuItem.item_slug, MenuItem.category),
        serializer=_item_to_dict,
        message="Menu items retrieved successfully",
        order_by=(PRICE_SORTS.get(price or "", MenuItem.item_name.asc()),),
        extra_criteria=extra,
    )


@router.delete("/delete-menu-item")
def delete_menu_items(
    payload: DeleteIds,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    delete_by_external_ids(db, MenuItem, MenuItem.item_id, payload.ids, principal)
    return {"success": True, "message": "Menu item deleted successfully"}


@router.patch("/update-menu-item/{item_pk}")
def update_menu_item(
    item_pk: int,
    payload: MenuItemUpdate,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    item = get_owned(db, MenuItem, item_pk, principal, message="Menu item not found")

    candidate: dict = {}
    if payload.item_name is not None:
        candidate["item_name"] = validate_string(payload.item_name, "Item Name", 2, 100)
    if payload.category is not None:
        candidate["category"] = _existing_category(db, item.brand_id, payload.category)
    if payload.item_price is not None:
        candidate["item_price"] = validate_positive_number(payload.item_price, "Item price")
    if payload.discount is not None:
        candidate["discount"] = payload.discount

    changes = changed_fields(item, candidate)
    if "item_name" in changes:
        ensure_unique(
            db,
            MenuItem,
            MenuItem.brand_id == item.brand_id,
            MenuItem.item_name == changes["item_name"],
            message="Item already exists in this brand",
            exclude_id=item.id,
        )
        changes["item_slug"] = slugify(changes["item_name"])

    apply_changes(item, changes, principal)
    db.commit()
    db.refresh(item)
    return {"success": True, "message": "Menu item updated", "data": _item_to_dict(item)}
