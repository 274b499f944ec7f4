from __future__ import annotations

from ahaar.models.brand import Brand
from ahaar.routers.brands import router as brands_router
from ahaar.services.access_control import Role
from tests.fixtures_data import (
    BRAND_A,
    BRAND_B,
    auth_header,
    build_client,
    make_session,
    principal,
    seed_brand,
    seed_user,
)

CHAIRMAN_A = principal("u-chairman", BRAND_A, Role.CHAIRMAN)
REGULAR_A = principal("u-regular", BRAND_A, Role.REGULAR)
ROOT = principal("root", None, Role.SUPER_ADMIN)


def test_current_brand_is_readable_without_a_plan():
    db = make_session()
    seed_brand(db, BRAND_A, active=False)
    client = build_client(db, brands_router)

    response = client.get("/api/v2/brands/current-brand", headers=auth_header(REGULAR_A))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["brand_id"] == BRAND_A
    assert data["subscription_info"]["state"] == "no_plan"


def test_update_info_is_a_sparse_diff():
    db = make_session()
    seed_brand(db, BRAND_A)
    client = build_client(db, brands_router)
    headers = auth_header(CHAIRMAN_A)

    updated = client.patch(
        "/api/v2/brands/update-info",
        json={"brand_name": "Spice Garden", "district": "Dhaka", "mobile1": "01711111111"},
        headers=headers,
    )
    repeated = client.patch("/api/v2/brands/update-info", json={"district": "Dhaka"}, headers=headers)
    bad_location = client.patch("/api/v2/brands/update-info", json={"location": "x"}, headers=headers)

    assert updated.status_code == 200
    data = updated.json()["data"]
    assert data["brand_slug"] == "spice-garden"
    assert data["address"]["district"] == "Dhaka"
    assert data["contact"]["mobile1"] == "01711111111"
    assert data["updatedBy"] == CHAIRMAN_A.user_id
    assert repeated.status_code == 400
    assert repeated.json()["message"] == "No fields to update"
    assert bad_location.status_code == 400


def test_update_info_requires_brand_authority():
    db = make_session()
    seed_brand(db, BRAND_A)
    client = build_client(db, brands_router)

    response = client.patch(
        "/api/v2/brands/update-info", json={"district": "Dhaka"}, headers=auth_header(REGULAR_A)
    )

    assert response.status_code == 403


def test_logo_replacement_deletes_the_old_asset_first():
    db = make_session()
    brand = seed_brand(db, BRAND_A)
    brand.logo_id = "brands/old-logo"
    db.commit()
    client = build_client(db, brands_router)

    response = client.patch(
        "/api/v2/brands/update-brand-logo",
        files={"brand_logo": ("logo.png", b"\x89PNG fake", "image/png")},
        headers=auth_header(CHAIRMAN_A),
    )

    assert response.status_code == 200
    calls = client.app.state.store.calls
    assert calls[0] == ("delete", "brands/old-logo")
    assert calls[1][0] == "upload"
    db.expire_all()
    assert db.query(Brand).one().logo_id == calls[1][1]


def test_logo_upload_requires_a_file():
    db = make_session()
    seed_brand(db, BRAND_A)
    client = build_client(db, brands_router)

    response = client.patch("/api/v2/brands/update-brand-logo", headers=auth_header(CHAIRMAN_A))

    assert response.status_code == 400
    assert response.json()["message"] == "Brand logo is required"


def test_brand_listing_is_super_admin_only_with_creator_info():
    db = make_session()
    seed_user(db, "u-chairman", email="owner@example.com")
    brand = seed_brand(db, BRAND_A)
    brand.created_by = "u-chairman"
    db.commit()
    seed_brand(db, BRAND_B, name="Brand B")
    client = build_client(db, brands_router)

    denied = client.get("/api/v2/brands/get-all", headers=auth_header(CHAIRMAN_A))
    listed = client.get("/api/v2/brands/get-all", params={"limit": 1, "search": "brand a"}, headers=auth_header(ROOT))

    assert denied.status_code == 403
    body = listed.json()
    assert body["data_found"] == 1
    assert body["pagination"]["totalPages"] == 1
    assert body["data"][0]["creator_info"]["email"] == "owner@example.com"
