from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ahaar.core.config import API_PREFIX
from ahaar.core.database import get_db
from ahaar.core.errors import NotFound, ValidationError
from ahaar.deps import get_active_principal, list_params, require_active_subscription
from ahaar.models.member import DEFAULT_MEMBER_DISCOUNT, Member
from ahaar.models.sold_invoice import SoldInvoice
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
from ahaar.services.validation import (
    require_field,
    validate_mobile,
    validate_non_negative_number,
    validate_string,
)

router = APIRouter(
    prefix=f"{API_PREFIX}/members",
    tags=["members"],
    dependencies=[Depends(require_active_subscription)],
)

SPENT_SORTS = {
    "high-to-low": Member.total_spent.desc(),
    "low-to-high": Member.total_spent.asc(),
}
DISCOUNT_SORTS = {
    "high-to-low": Member.total_discount.desc(),
    "low-to-high": Member.total_discount.asc(),
}


class MemberCreate(BaseModel):
    name: Optional[str] = None
    mobile: Optional[str] = None


class MemberUpdate(BaseModel):
    name: Optional[str] = None
    discount: Optional[float] = None


def _member_to_dict(member: Member) -> dict:
    return {
        "id": member.id,
        "member_id": member.member_id,
        "name": member.name,
        "mobile": member.mobile,
        "discount_value": member.discount_value,
        "total_discount": member.total_discount,
        "total_spent": member.total_spent,
        "brand": member.brand_id,
        "createdBy": member.created_by,
        "createdAt": iso(member.created_at),
        "updatedBy": member.updated_by,
        "updatedAt": iso(member.updated_at),
    }


@router.post("/create-member")
def create_member(
    payload: MemberCreate,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    brand_id = require_brand(principal)
    require_field(payload.name, "Name is required")
    require_field(payload.mobile, "Mobile is required")
    name = validate_string(payload.name, "Name", 2, 100)
    mobile = validate_mobile(payload.mobile)
    ensure_unique(
        db,
        Member,
        Member.brand_id == brand_id,
        Member.mobile == mobile,
        message="Member already exists in this brand",
    )

    member = Member(
        member_id=generate_external_id(db, Member),
        name=name,
        mobile=mobile,
        discount_value=DEFAULT_MEMBER_DISCOUNT,
        total_discount=0.0,
        total_spent=0.0,
        brand_id=brand_id,
    )
    stamp_created(member, principal)
    db.add(member)
    db.commit()
    db.refresh(member)
    return {"success": True, "message": "New member created", "data": _member_to_dict(member)}


@router.get("/get-all")
def list_members(
    params: ListParams = Depends(list_params),
    spent: Optional[str] = Query(None),
    discount: Optional[str] = Query(None),
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    order = Member.name.asc()
    if spent in SPENT_SORTS:
        order = SPENT_SORTS[spent]
    if discount in DISCOUNT_SORTS:
        order = DISCOUNT_SORTS[discount]

    return list_scoped(
        db,
        principal,
        Member,
        params=params,
        search_columns=(Member.name, Member.mobile),
        serializer=_member_to_dict,
        message="Members retrieved successfully",
        order_by=(order,),
    )


@router.get("/member/{mobile}")
def get_member_by_mobile(
    mobile: str,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    brand_id = require_brand(principal)
    mobile = validate_mobile(mobile)
    member = db.query(Member).filter(Member.brand_id == brand_id, Member.mobile == mobile).first()
    if member is None:
        raise NotFound("Member not found with this number")

    invoice_ids = [
        row.invoice_id
        for row in db.query(SoldInvoice.invoice_id)
        .filter(SoldInvoice.brand_id == brand_id, SoldInvoice.member_id == member.member_id)
        .order_by(SoldInvoice.created_at.desc())
        .all()
    ]
    data = _member_to_dict(member)
    data["invoices"] = invoice_ids
    return {"success": True, "message": "Member retrieved successfully", "data": data}


@router.delete("/delete-member")
def delete_members(
    payload: DeleteIds,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    delete_by_external_ids(db, Member, Member.member_id, payload.ids, principal)
    return {"success": True, "message": "Member deleted successfully"}


@router.patch("/update-member/{member_pk}")
def update_member(
    member_pk: int,
    payload: MemberUpdate,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    member = get_owned(db, Member, member_pk, principal, message="Member not found")

    candidate: dict = {}
    if payload.name is not None:
        candidate["name"] = validate_string(payload.name, "Name", 2, 100)
    if payload.discount is not None:
        discount_value = validate_non_negative_number(payload.discount, "Discount value")
        if discount_value > 100:
            raise ValidationError("Discount value must not exceed 100")
        candidate["discount_value"] = discount_value

    changes = changed_fields(member, candidate)
    apply_changes(member, changes, principal)
    db.commit()
    db.refresh(member)
    return {"success": True, "message": "Member updated", "data": _member_to_dict(member)}
