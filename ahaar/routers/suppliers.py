from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ahaar.core.config import API_PREFIX
from ahaar.core.database import get_db
from ahaar.deps import get_active_principal, list_params, require_active_subscription, require_operation
from ahaar.models.supplier import Supplier
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
from ahaar.services.validation import require_field, validate_email, validate_mobile, validate_string

router = APIRouter(
    prefix=f"{API_PREFIX}/suppliers",
    tags=["suppliers"],
    dependencies=[Depends(require_active_subscription)],
)

DUPLICATE_MESSAGE = "Supplier already exist with this phone number"


class SupplierCreate(BaseModel):
    name: Optional[str] = None
    company_name: Optional[str] = None
    mobile1: Optional[str] = None
    mobile2: Optional[str] = None
    email: Optional[str] = None


class SupplierUpdate(SupplierCreate):
    pass


def _supplier_to_dict(supplier: Supplier) -> dict:
    return {
        "id": supplier.id,
        "supplier_id": supplier.supplier_id,
        "name": supplier.name,
        "company_name": supplier.company_name,
        "mobile1": supplier.mobile1,
        "mobile2": supplier.mobile2,
        "email": supplier.email,
        "brand_id": supplier.brand_id,
        "createdBy": supplier.created_by,
        "createdAt": iso(supplier.created_at),
        "updatedBy": supplier.updated_by,
        "updatedAt": iso(supplier.updated_at),
    }


def _optional_fields(payload: SupplierCreate) -> dict:
    fields: dict = {}
    if payload.company_name:
        fields["company_name"] = validate_string(payload.company_name, "Company name", 3, 30)
    if payload.mobile2:
        fields["mobile2"] = validate_mobile(payload.mobile2)
    if payload.email:
        fields["email"] = validate_email(payload.email)
    return fields


@router.post("/add-supplier")
def add_supplier(
    payload: SupplierCreate,
    principal: Principal = Depends(require_operation("supplier.create")),
    db: Session = Depends(get_db),
):
    brand_id = require_brand(principal)
    require_field(payload.name, "Supplier name is required")
    require_field(payload.mobile1, "Mobile number is required")
    name = validate_string(payload.name, "Name", 3, 30)
    mobile1 = validate_mobile(payload.mobile1)
    optional = _optional_fields(payload)
    ensure_unique(
        db,
        Supplier,
        Supplier.brand_id == brand_id,
        Supplier.mobile1 == mobile1,
        message=DUPLICATE_MESSAGE,
    )

    supplier = Supplier(
        supplier_id=generate_external_id(db, Supplier),
        name=name,
        mobile1=mobile1,
        brand_id=brand_id,
        **optional,
    )
    stamp_created(supplier, principal)
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    return {"success": True, "message": "Supplier added successfully", "data": _supplier_to_dict(supplier)}


@router.get("/get-all")
def list_suppliers(
    params: ListParams = Depends(list_params),
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    return list_scoped(
        db,
        principal,
        Supplier,
        params=params,
        search_columns=(Supplier.name, Supplier.company_name, Supplier.mobile1, Supplier.mobile2),
        serializer=_supplier_to_dict,
        message="Suppliers retrieved successfully",
        order_by=(Supplier.name.asc(),),
    )


@router.patch("/update-supplier/{supplier_pk}")
def update_supplier(
    supplier_pk: int,
    payload: SupplierUpdate,
    principal: Principal = Depends(require_operation("supplier.update")),
    db: Session = Depends(get_db),
):
    supplier = get_owned(db, Supplier, supplier_pk, principal, message="Supplier not found")

    candidate = _optional_fields(payload)
    if payload.name is not None:
        candidate["name"] = validate_string(payload.name, "Name", 3, 30)
    if payload.mobile1 is not None:
        candidate["mobile1"] = validate_mobile(payload.mobile1)

    changes = changed_fields(supplier, candidate)
    if "mobile1" in changes:
        ensure_unique(
            db,
            Supplier,
            Supplier.brand_id == supplier.brand_id,
            Supplier.mobile1 == changes["mobile1"],
            message=DUPLICATE_MESSAGE,
            exclude_id=supplier.id,
        )
    apply_changes(supplier, changes, principal)
    db.commit()
    db.refresh(supplier)
    return {"success": True, "message": "Supplier updated", "data": _supplier_to_dict(supplier)}


@router.delete("/delete-supplier")
def delete_suppliers(
    payload: DeleteIds,
    principal: Principal = Depends(require_operation("supplier.delete")),
    db: Session = Depends(get_db),
):
    delete_by_external_ids(db, Supplier, Supplier.supplier_id, payload.ids, principal)
    return {"success": True, "message": "Supplier deleted successfully"}
