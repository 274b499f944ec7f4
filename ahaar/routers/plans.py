from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ahaar.core.config import API_PREFIX
from ahaar.core.database import get_db
from ahaar.core.errors import NotFound, ValidationError
from ahaar.deps import require_operation
from ahaar.models.brand import Brand
from ahaar.models.plan import Plan, PlanPurchase
from ahaar.services.access_control import Principal, require_brand
from ahaar.services.resources import ensure_unique, generate_external_id, iso
from ahaar.services.subscription import start_subscription
from ahaar.services.validation import require_field, validate_positive_number, validate_string
from ahaar.utils.clock import utcnow

# No subscription gate here: a brand without a plan must still be able to buy one.
router = APIRouter(prefix=f"{API_PREFIX}/plans", tags=["plans"])


class PlanCreate(BaseModel):
    plan_name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Any] = None
    user_limit: Optional[Any] = None
    features: Optional[str] = None
    limitations: Optional[str] = None
    terms_and_conditions: Optional[str] = None


class PlanPurchaseIn(BaseModel):
    plan_id: Optional[str] = None
    amount: Optional[Any] = None


def _plan_to_dict(plan: Plan) -> dict:
    return {
        "id": plan.id,
        "plan_id": plan.plan_id,
        "plan_name": plan.plan_name,
        "description": plan.description,
        "duration": plan.duration,
        "price": plan.price,
        "user_limit": plan.user_limit,
        "currency": plan.currency,
        "features": plan.features,
        "limitations": plan.limitations,
        "terms_and_conditions": plan.terms_and_conditions,
        "createdBy": plan.created_by,
        "createdAt": iso(plan.created_at),
    }


def _user_limit(value: Any) -> int:
    number = validate_positive_number(value, "User limit")
    if number != int(number):
        raise ValidationError("User limit must be a whole number")
    return int(number)


@router.post("/create-plan")
def create_plan(
    payload: PlanCreate,
    principal: Principal = Depends(require_operation("plan.create")),
    db: Session = Depends(get_db),
):
    for value, message in (
        (payload.plan_name, "Plan name is required"),
        (payload.description, "Description is required"),
        (payload.price, "Price is required"),
        (payload.user_limit, "User limit is required"),
        (payload.features, "Features are required"),
        (payload.limitations, "Limitations are required"),
        (payload.terms_and_conditions, "Terms and conditions are required"),
    ):
        require_field(value, message)

    plan_name = validate_string(payload.plan_name, "Plan name", 2, 20)
    ensure_unique(db, Plan, Plan.plan_name == plan_name, message="Plan already exists")

    plan = Plan(
        plan_id=generate_external_id(db, Plan),
        plan_name=plan_name,
        description=validate_string(payload.description, "Description", 2, 500),
        price=validate_positive_number(payload.price, "Price"),
        user_limit=_user_limit(payload.user_limit),
        features=validate_string(payload.features, "Features", 2, 500),
        limitations=validate_string(payload.limitations, "Limitations", 2, 500),
        terms_and_conditions=validate_string(payload.terms_and_conditions, "Terms and conditions", 2, 1000),
        duration="monthly",
        currency="BDT",
        created_by=principal.user_id,
        created_at=utcnow(),
    )
    db.add(plan)
    db.commit()
    db.refresh(plan)
    return {"success": True, "message": "Plan created successfully", "data": _plan_to_dict(plan)}


@router.get("/get-all")
def list_plans(db: Session = Depends(get_db)):
    plans = db.query(Plan).order_by(Plan.price.asc(), Plan.id.asc()).all()
    return {
        "success": True,
        "message": "Plans retrieved successfully",
        "data_found": len(plans),
        "data": [_plan_to_dict(plan) for plan in plans],
    }


@router.get("/get/{plan_id}")
def get_plan(plan_id: str, db: Session = Depends(get_db)):
    plan = db.query(Plan).filter(Plan.plan_id == plan_id).first()
    if plan is None:
        raise NotFound("Plan not found")
    return {"success": True, "message": "Plan retrieved successfully", "data": _plan_to_dict(plan)}


@router.post("/purchase-plan")
def purchase_plan(
    payload: PlanPurchaseIn,
    principal: Principal = Depends(require_operation("plan.purchase")),
    db: Session = Depends(get_db),
):
    brand_id = require_brand(principal)
    require_field(payload.plan_id, "Plan id is required")
    require_field(payload.amount, "Amount is required")
    amount = validate_positive_number(payload.amount, "Amount")

    plan = db.query(Plan).filter(Plan.plan_id == payload.plan_id.strip()).first()
    if plan is None:
        raise NotFound("Plan not found")
    if amount < plan.price:
        raise ValidationError(f"Amount must be at least {plan.price:g} {plan.currency}")

    brand = db.query(Brand).filter(Brand.brand_id == brand_id).first()
    if brand is None:
        raise NotFound("Brand not found")

    db.add(PlanPurchase(user_id=principal.user_id, brand_id=brand_id, plan_id=plan.plan_id, amount=amount))
    start_subscription(db, brand, plan, amount)
    brand.updated_by = principal.user_id
    brand.updated_at = utcnow()
    db.commit()
    db.refresh(brand)

    return {
        "success": True,
        "message": "Plan purchased successfully",
        "data": {
            "brand_id": brand.brand_id,
            "selected_plan": {"id": brand.selected_plan_id, "name": brand.selected_plan_name},
            "subscription_info": {
                "status": brand.subscription_status,
                "end_time": iso(brand.subscription_end_time),
                "previous_payment_amount": brand.previous_payment_amount,
                "previous_payment_time": iso(brand.previous_payment_time),
            },
        },
    }
