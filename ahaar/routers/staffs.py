import re
from collections import defaultdict
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ahaar.core.config import API_PREFIX
from ahaar.core.database import get_db
from ahaar.core.errors import ValidationError
from ahaar.deps import get_active_principal, list_params, require_active_subscription
from ahaar.models.sold_invoice import SoldInvoice
from ahaar.models.staff import Staff
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

router = APIRouter(
    prefix=f"{API_PREFIX}/staffs",
    tags=["staffs"],
    dependencies=[Depends(require_active_subscription)],
)

_MONTH_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


class StaffIn(BaseModel):
    name: Optional[str] = None


def _staff_to_dict(staff: Staff) -> dict:
    return {
        "id": staff.id,
        "staff_id": staff.staff_id,
        "name": staff.name,
        "brand": staff.brand_id,
        "createdBy": staff.created_by,
        "createdAt": iso(staff.created_at),
        "updatedBy": staff.updated_by,
        "updatedAt": iso(staff.updated_at),
    }


def _staff_name(value: Optional[str]) -> str:
    require_field(value, "Name is required")
    return validate_string(value, "Name", 2, 100)


def month_bounds(month: str) -> tuple[datetime, datetime]:
    """[first day, first day of next month) for a ``YYYY-MM`` string."""
    match = _MONTH_RE.match(month or "")
    if not match:
        raise ValidationError("Invalid month format. Expected format: YYYY-MM")
    year, month_number = int(match.group(1)), int(match.group(2))
    start = datetime(year, month_number, 1)
    end = datetime(year + 1, 1, 1) if month_number == 12 else datetime(year, month_number + 1, 1)
    return start, end


@router.post("/create-staff")
def create_staff(
    payload: StaffIn,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    brand_id = require_brand(principal)
    name = _staff_name(payload.name)
    ensure_unique(
        db,
        Staff,
        Staff.brand_id == brand_id,
        Staff.name == name,
        message="Name already exists in this brand",
    )

    staff = Staff(staff_id=generate_external_id(db, Staff), name=name, brand_id=brand_id)
    stamp_created(staff, principal)
    db.add(staff)
    db.commit()
    db.refresh(staff)
    return {"success": True, "message": "New staff created", "data": _staff_to_dict(staff)}


@router.get("/get-all")
def list_staffs(
    params: ListParams = Depends(list_params),
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    return list_scoped(
        db,
        principal,
        Staff,
        params=params,
        search_columns=(Staff.name,),
        serializer=_staff_to_dict,
        message="Staffs retrieved successfully",
        order_by=(Staff.name.asc(),),
    )


@router.delete("/delete-staff")
def delete_staffs(
    payload: DeleteIds,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    delete_by_external_ids(db, Staff, Staff.staff_id, payload.ids, principal)
    return {"success": True, "message": "Staff deleted successfully"}


@router.patch("/update-staff/{staff_pk}")
def update_staff(
    staff_pk: int,
    payload: StaffIn,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    staff = get_owned(db, Staff, staff_pk, principal, message="Staff not found")
    name = _staff_name(payload.name)
    changes = changed_fields(staff, {"name": name})
    ensure_unique(
        db,
        Staff,
        Staff.brand_id == staff.brand_id,
        Staff.name == name,
        message="Name already exists in this brand",
        exclude_id=staff.id,
    )
    apply_changes(staff, changes, principal)
    db.commit()
    db.refresh(staff)
    return {"success": True, "message": "Staff updated", "data": _staff_to_dict(staff)}


@router.get("/sell-record/{month}")
def staff_sell_record(
    month: str,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    brand_id = require_brand(principal)
    start, end = month_bounds(month)
    rows = (
        db.query(SoldInvoice.created_at, SoldInvoice.served_by, SoldInvoice.total_bill)
        .filter(
            SoldInvoice.brand_id == brand_id,
            SoldInvoice.created_at >= start,
            SoldInvoice.created_at < end,
        )
        .all()
    )

    totals: dict[tuple[str, str], float] = defaultdict(float)
    for created_at, served_by, total_bill in rows:
        totals[(created_at.strftime("%Y-%m-%d"), served_by)] += total_bill or 0.0

    data = [
        {"day": day, "served_by": served_by, "total_bill": round(total, 2)}
        for (day, served_by), total in sorted(totals.items())
    ]
    return {"success": True, "message": "Staff sell record retrieved successfully", "data": data}
