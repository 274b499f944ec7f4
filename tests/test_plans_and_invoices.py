from __future__ import annotations

from ahaar.models.brand import Brand
from ahaar.models.member import Member
from ahaar.models.menu_item import MenuItem
from ahaar.models.plan import PlanPurchase
from ahaar.models.sold_invoice import SoldInvoice
from ahaar.routers.plans import router as plans_router
from ahaar.routers.sold_invoices import router as sold_invoices_router
from ahaar.routers.tables import router as tables_router
from ahaar.services.access_control import Role
from tests.fixtures_data import (
    BRAND_A,
    BRAND_B,
    auth_header,
    build_client,
    make_session,
    principal,
    seed_brand,
    seed_plan,
)

PLAN_PAYLOAD = {
    "plan_name": "Starter",
    "description": "For small restaurants",
    "price": 500,
    "user_limit": 3,
    "features": "Tables, menu, invoices",
    "limitations": "Three users",
    "terms_and_conditions": "Billed monthly, no refunds",
}
ROOT = principal("root", None, Role.SUPER_ADMIN)
CHAIRMAN_A = principal("u-chairman-a", BRAND_A, Role.CHAIRMAN)


def test_only_super_admin_creates_plans():
    db = make_session()
    client = build_client(db, plans_router)

    denied = client.post("/api/v2/plans/create-plan", json=PLAN_PAYLOAD, headers=auth_header(CHAIRMAN_A))
    created = client.post("/api/v2/plans/create-plan", json=PLAN_PAYLOAD, headers=auth_header(ROOT))

    assert denied.status_code == 403
    assert created.status_code == 200
    plan = created.json()["data"]
    assert plan["duration"] == "monthly"
    assert plan["currency"] == "BDT"
    assert plan["user_limit"] == 3
    assert plan["plan_id"].startswith("1-")


def test_plan_validation():
    db = make_session()
    client = build_client(db, plans_router)

    negative = client.post("/api/v2/plans/create-plan", json={**PLAN_PAYLOAD, "price": -1}, headers=auth_header(ROOT))
    long_name = client.post(
        "/api/v2/plans/create-plan", json={**PLAN_PAYLOAD, "plan_name": "x" * 21}, headers=auth_header(ROOT)
    )

    assert negative.status_code == 400
    assert long_name.status_code == 400


def test_plans_are_public_and_sorted_by_price():
    db = make_session()
    seed_plan(db, plan_id="1-gold", price=1500)
    seed_plan(db, plan_id="2-basic", price=300)
    client = build_client(db, plans_router)

    listed = client.get("/api/v2/plans/get-all")
    single = client.get("/api/v2/plans/get/2-basic")
    missing = client.get("/api/v2/plans/get/9-none")

    assert [row["plan_id"] for row in listed.json()["data"]] == ["2-basic", "1-gold"]
    assert single.json()["data"]["price"] == 300
    assert missing.status_code == 404


def test_purchase_activates_subscription_and_opens_the_gate():
    db = make_session()
    seed_plan(db, plan_id="1-basic", price=500)
    seed_brand(db, BRAND_A, active=False)
    client = build_client(db, plans_router, tables_router)
    headers = auth_header(CHAIRMAN_A)

    before = client.get("/api/v2/tables/get-all", headers=headers)
    short = client.post("/api/v2/plans/purchase-plan", json={"plan_id": "1-basic", "amount": 499}, headers=headers)
    bought = client.post("/api/v2/plans/purchase-plan", json={"plan_id": "1-basic", "amount": 500}, headers=headers)
    after = client.get("/api/v2/tables/get-all", headers=headers)

    assert before.status_code == 402
    assert short.status_code == 400
    assert bought.status_code == 200
    info = bought.json()["data"]
    assert info["selected_plan"] == {"id": "1-basic", "name": "Plan 1-basic"}
    assert info["subscription_info"]["status"] is True
    assert info["subscription_info"]["previous_payment_amount"] == 500
    assert after.status_code == 200

    brand = db.query(Brand).one()
    assert (brand.subscription_end_time - brand.previous_payment_time).days == 30
    purchase = db.query(PlanPurchase).one()
    assert purchase.brand_id == BRAND_A
    assert purchase.user_id == CHAIRMAN_A.user_id


def _seed_menu(db) -> None:
    db.add_all(
        [
            MenuItem(item_id="1-burger", brand_id=BRAND_A, item_name="Burger", item_slug="burger",
                     category="Mains", discount=True, item_price=200.0),
            MenuItem(item_id="2-cola", brand_id=BRAND_A, item_name="Cola", item_slug="cola",
                     category="Drinks", discount=False, item_price=50.0),
            MenuItem(item_id="3-foreign", brand_id=BRAND_B, item_name="Pizza", item_slug="pizza",
                     category="Mains", discount=True, item_price=900.0),
            Member(member_id="1-member", brand_id=BRAND_A, name="Rahim", mobile="01811111111",
                   discount_value=10.0, total_discount=5.0, total_spent=100.0),
        ]
    )
    db.commit()


def test_invoice_prices_come_from_the_menu_and_member_totals_accumulate():
    db = make_session()
    seed_brand(db, BRAND_A)
    _seed_menu(db)
    client = build_client(db, sold_invoices_router)

    response = client.post(
        "/api/v2/sold-invoices/add-sold-invoice",
        json={
            "served_by": "Karim",
            "table_name": "Window",
            "member_mobile": "01811111111",
            "items": [
                {"item_id": "1-burger", "quantity": 2},
                {"item_id": "2-cola", "quantity": 1},
                {"item_id": "1-burger", "quantity": 1},
            ],
        },
        headers=auth_header(CHAIRMAN_A),
    )

    assert response.status_code == 200
    invoice = response.json()["data"]
    assert invoice["sub_total"] == 650.0
    assert invoice["discount"] == 60.0
    assert invoice["total_bill"] == 590.0
    assert invoice["payment_method"] == "cash"
    assert {line["item_id"]: line["quantity"] for line in invoice["items"]} == {"1-burger": 3, "2-cola": 1}

    db.expire_all()
    member = db.query(Member).one()
    assert member.total_spent == 690.0
    assert member.total_discount == 65.0


def test_invoice_rejects_items_of_another_brand():
    db = make_session()
    seed_brand(db, BRAND_A)
    _seed_menu(db)
    client = build_client(db, sold_invoices_router)

    response = client.post(
        "/api/v2/sold-invoices/add-sold-invoice",
        json={"served_by": "Karim", "items": [{"item_id": "3-foreign", "quantity": 1}]},
        headers=auth_header(CHAIRMAN_A),
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Menu item not found: 3-foreign"
    assert db.query(SoldInvoice).count() == 0


def test_invoice_reads_are_brand_scoped():
    db = make_session()
    seed_brand(db, BRAND_A)
    seed_brand(db, BRAND_B, name="Brand B")
    _seed_menu(db)
    client = build_client(db, sold_invoices_router)
    created = client.post(
        "/api/v2/sold-invoices/add-sold-invoice",
        json={"served_by": "Karim", "items": [{"item_id": "2-cola", "quantity": 2}]},
        headers=auth_header(CHAIRMAN_A),
    ).json()["data"]

    own = client.get(f"/api/v2/sold-invoices/get-sold-invoice/{created['invoice_id']}", headers=auth_header(CHAIRMAN_A))
    foreign = client.get(
        f"/api/v2/sold-invoices/get-sold-invoice/{created['invoice_id']}",
        headers=auth_header(principal("u-b", BRAND_B, Role.CHAIRMAN)),
    )
    listed = client.get("/api/v2/sold-invoices/get-sold-invoices", headers=auth_header(CHAIRMAN_A))

    assert own.status_code == 200
    assert own.json()["data"]["total_bill"] == 100.0
    assert foreign.status_code == 404
    assert listed.json()["data_found"] == 1
