from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ahaar.core.config import API_PREFIX
from ahaar.core.database import get_db
from ahaar.core.errors import NotFound, ValidationError
from ahaar.deps import get_active_principal, list_params, require_active_subscription
from ahaar.models.member import Member
from ahaar.models.menu_item import MenuItem
from ahaar.models.sold_invoice import SoldInvoice
from ahaar.services.access_control import Principal, owned_by, require_brand
from ahaar.services.resources import ListParams, generate_external_id, iso, list_scoped, stamp_created
from ahaar.services.validation import require_field, validate_mobile, validate_string

router = APIRouter(
    prefix=f"{API_PREFIX}/sold-invoices",
    tags=["sold-invoices"],
    dependencies=[Depends(require_active_subscription)],
)

PAYMENT_METHODS = {"cash", "card", "mobile_banking"}


class InvoiceLineIn(BaseModel):
    item_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1, le=1000)


class SoldInvoiceCreate(BaseModel):
    served_by: Optional[str] = None
    table_name: Optional[str] = None
    member_mobile: Optional[str] = None
    payment_method: Optional[str] = None
    items: List[InvoiceLineIn] = Field(default_factory=list)


def _invoice_to_dict(invoice: SoldInvoice) -> dict:
    return {
        "id": invoice.id,
        "invoice_id": invoice.invoice_id,
        "brand": invoice.brand_id,
        "member_id": invoice.member_id,
        "member_mobile": invoice.member_mobile,
        "served_by": invoice.served_by,
        "table_name": invoice.table_name,
        "payment_method": invoice.payment_method,
        "items": invoice.items,
        "sub_total": invoice.sub_total,
        "discount": invoice.discount,
        "total_bill": invoice.total_bill,
        "createdBy": invoice.created_by,
        "createdAt": iso(invoice.created_at),
    }


def _price_lines(db: Session, brand_id: str, lines: List[InvoiceLineIn]) -> list[dict]:
    quantities: dict[str, int] = {}
    for line in lines:
        quantities[line.item_id] = quantities.get(line.item_id, 0) + line.quantity

    items = (
        db.query(MenuItem)
        .filter(MenuItem.brand_id == brand_id, MenuItem.item_id.in_(quantities))
        .all()
    )
    by_id = {item.item_id: item for item in items}
    missing = [item_id for item_id in quantities if item_id not in by_id]
    if missing:
        raise ValidationError(f"Menu item not found: {', '.join(missing)}")

    return [
        {
            "item_id": item_id,
            "item_name": by_id[item_id].item_name,
            "item_price": by_id[item_id].item_price,
            "quantity": quantity,
            "discount": by_id[item_id].discount,
            "line_total": round(by_id[item_id].item_price * quantity, 2),
        }
        for item_id, quantity in quantities.items()
    ]


@router.post("/add-sold-invoice")
def add_sold_invoice(
    payload: SoldInvoiceCreate,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    brand_id = require_brand(principal)
    require_field(payload.served_by, "Served by is required")
    served_by = validate_string(payload.served_by, "Served by", 2, 100)
    table_name = validate_string(payload.table_name, "Table Name", 2, 30) if payload.table_name else None
    payment_method = (payload.payment_method or "cash").strip().lower()
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method. Allowed: {', '.join(sorted(PAYMENT_METHODS))}")
    if not payload.items:
        raise ValidationError("At least one item is required")

    lines = _price_lines(db, brand_id, payload.items)
    sub_total = round(sum(line["line_total"] for line in lines), 2)
    discountable = sum(line["line_total"] for line in lines if line["discount"])

    member = None
    discount = 0.0
    if payload.member_mobile:
        mobile = validate_mobile(payload.member_mobile)
        member = db.query(Member).filter(Member.brand_id == brand_id, Member.mobile == mobile).first()
        if member is None:
            raise NotFound("Member not found with this number")
        discount = round(discountable * member.discount_value / 100, 2)
    total_bill = round(sub_total - discount, 2)

    invoice = SoldInvoice(
        invoice_id=generate_external_id(db, SoldInvoice),
        brand_id=brand_id,
        member_id=member.member_id if member else None,
        member_mobile=member.mobile if member else None,
        served_by=served_by,
        table_name=table_name,
        payment_method=payment_method,
        items=lines,
        sub_total=sub_total,
        discount=discount,
        total_bill=total_bill,
    )
    stamp_created(invoice, principal)
    db.add(invoice)

    if member is not None:
        # single UPDATE so concurrent invoices never lose an increment
        db.query(Member).filter(Member.id == member.id).update(
            {
                Member.total_spent: Member.total_spent + total_bill,
                Member.total_discount: Member.total_discount + discount,
            },
            synchronize_session=False,
        )

    db.commit()
    db.refresh(invoice)
    return {"success": True, "message": "Invoice added successfully", "data": _invoice_to_dict(invoice)}


@router.get("/get-sold-invoice/{invoice_id}")
def get_sold_invoice(
    invoice_id: str,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    invoice = (
        db.query(SoldInvoice)
        .filter(SoldInvoice.invoice_id == invoice_id, *owned_by(principal, SoldInvoice.brand_id))
        .first()
    )
    if invoice is None:
        raise NotFound("Invoice not found")
    return {"success": True, "message": "Invoice retrieved successfully", "data": _invoice_to_dict(invoice)}


@router.get("/get-sold-invoices")
def list_sold_invoices(
    params: ListParams = Depends(list_params),
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    return list_scoped(
        db,
        principal,
        SoldInvoice,
        params=params,
        search_columns=(SoldInvoice.invoice_id, SoldInvoice.served_by, SoldInvoice.table_name),
        serializer=_invoice_to_dict,
        message="Invoices retrieved successfully",
        order_by=(SoldInvoice.created_at.desc(), SoldInvoice.id.desc()),
    )
