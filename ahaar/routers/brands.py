import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ahaar.core.config import API_PREFIX
from ahaar.core.database import get_db
from ahaar.core.errors import Internal, NotFound
from ahaar.deps import asset_store, get_active_principal, list_params, require_operation
from ahaar.models.brand import Brand
from ahaar.models.user import User
from ahaar.services.access_control import Principal, require_brand, search_predicate
from ahaar.services.assets import AssetStore, read_image_upload, replace_asset
from ahaar.services.resources import (
    ListParams,
    apply_changes,
    changed_fields,
    iso,
    list_envelope,
    paginate,
)
from ahaar.services.subscription import subscription_state
from ahaar.services.validation import validate_mobile, validate_string
from ahaar.utils.slug import slugify

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_PREFIX}/brands", tags=["brands"])


class BrandInfoUpdate(BaseModel):
    brand_name: Optional[str] = None
    mobile1: Optional[str] = None
    mobile2: Optional[str] = None
    location: Optional[str] = None
    sub_district: Optional[str] = None
    district: Optional[str] = None


def _brand_to_dict(brand: Brand) -> dict:
    return {
        "id": brand.id,
        "brand_id": brand.brand_id,
        "brand_name": brand.brand_name,
        "brand_slug": brand.brand_slug,
        "brand_logo": {"id": brand.logo_id, "url": brand.logo_url},
        "address": {
            "location": brand.location,
            "sub_district": brand.sub_district,
            "district": brand.district,
        },
        "contact": {"mobile1": brand.mobile1, "mobile2": brand.mobile2},
        "selected_plan": {"id": brand.selected_plan_id, "name": brand.selected_plan_name},
        "subscription_info": {
            "status": brand.subscription_status,
            "state": subscription_state(brand),
            "end_time": iso(brand.subscription_end_time),
            "previous_payment_amount": brand.previous_payment_amount,
            "previous_payment_time": iso(brand.previous_payment_time),
        },
        "createdBy": brand.created_by,
        "createdAt": iso(brand.created_at),
        "updatedBy": brand.updated_by,
        "updatedAt": iso(brand.updated_at),
    }


def _load_own_brand(db: Session, principal: Principal) -> Brand:
    brand = db.query(Brand).filter(Brand.brand_id == require_brand(principal)).first()
    if brand is None:
        raise NotFound("Brand not found")
    return brand


@router.get("/current-brand")
def current_brand(
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    brand = _load_own_brand(db, principal)
    return {"success": True, "message": "Brand retrieved successfully", "data": _brand_to_dict(brand)}


@router.patch("/update-info")
def update_brand_info(
    payload: BrandInfoUpdate,
    principal: Principal = Depends(require_operation("brand.update_info")),
    db: Session = Depends(get_db),
):
    brand = _load_own_brand(db, principal)

    candidate = {}
    if payload.brand_name is not None:
        candidate["brand_name"] = validate_string(payload.brand_name, "Brand name", 3, 30)
    if payload.mobile1 is not None:
        candidate["mobile1"] = validate_mobile(payload.mobile1)
    if payload.mobile2 is not None:
        candidate["mobile2"] = validate_mobile(payload.mobile2)
    if payload.location is not None:
        candidate["location"] = validate_string(payload.location, "Location", 2, 300)
    if payload.sub_district is not None:
        candidate["sub_district"] = validate_string(payload.sub_district, "Sub district", 2, 50)
    if payload.district is not None:
        candidate["district"] = validate_string(payload.district, "District", 2, 50)

    changes = changed_fields(brand, candidate)
    if "brand_name" in changes:
        changes["brand_slug"] = slugify(changes["brand_name"])
    apply_changes(brand, changes, principal)
    db.commit()
    db.refresh(brand)
    return {"success": True, "message": "Brand info updated", "data": _brand_to_dict(brand)}


@router.patch("/update-brand-logo")
def update_brand_logo(
    brand_logo: Optional[UploadFile] = File(None),
    principal: Principal = Depends(require_operation("brand.update_logo")),
    db: Session = Depends(get_db),
    store: AssetStore = Depends(asset_store),
):
    brand = _load_own_brand(db, principal)
    data = read_image_upload(brand_logo, "Brand logo")

    try:
        uploaded = replace_asset(
            store,
            old_public_id=brand.logo_id,
            data=data,
            folder=f"brands/{brand.brand_id}/logo",
            filename=brand_logo.filename,
        )
    except Exception as exc:
        logger.exception("brand logo upload failed brand_id=%s", brand.brand_id)
        raise Internal("Failed to upload brand logo") from exc

    apply_changes(brand, {"logo_id": uploaded["public_id"], "logo_url": uploaded["url"]}, principal)
    db.commit()
    db.refresh(brand)
    return {"success": True, "message": "Brand logo updated", "data": _brand_to_dict(brand)}


@router.get("/get-all")
def list_brands(
    params: ListParams = Depends(list_params),
    _principal: Principal = Depends(require_operation("brand.list_all")),
    db: Session = Depends(get_db),
):
    query = db.query(Brand)
    search = (params.search or "").strip()
    if search:
        query = query.filter(search_predicate(search, (Brand.brand_name, Brand.brand_slug, Brand.brand_id)))
    count = query.count()
    brands = paginate(query.order_by(Brand.created_at.desc(), Brand.id.desc()), params)

    creator_ids = {brand.created_by for brand in brands if brand.created_by}
    creators = {}
    if creator_ids:
        for user in db.query(User).filter(User.user_id.in_(creator_ids)).all():
            creators[user.user_id] = {
                "user_id": user.user_id,
                "name": user.name,
                "email": user.email,
                "mobile": user.mobile,
            }

    data = []
    for brand in brands:
        payload = _brand_to_dict(brand)
        payload["creator_info"] = creators.get(brand.created_by)
        data.append(payload)
    return list_envelope("Brands retrieved successfully", count=count, params=params, data=data)
