from __future__ import annotations

import pytest
from fastapi.security import HTTPAuthorizationCredentials
from starlette.requests import Request

from ahaar.core.errors import Forbidden, RevokedIdentity, Unauthenticated
from ahaar.deps import get_active_principal, get_current_principal
from ahaar.models.dining_table import DiningTable
from ahaar.models.user import RemovedUser
from ahaar.routers.tables import router as tables_router
from ahaar.services.access_control import (
    Principal,
    Role,
    can_manage,
    ensure_allowed,
    ensure_can_manage,
    is_allowed,
    resolve_scope,
)
from ahaar.services.auth import create_access_token
from tests.fixtures_data import (
    BRAND_A,
    BRAND_B,
    auth_header,
    build_client,
    make_session,
    principal,
    seed_brand,
)


def _build_request(path: str = "/api/v2/tables/get-all") -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "query_string": b"",
        "headers": [],
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
        "scheme": "http",
    }
    return Request(scope)


def _seed_tables(db) -> None:
    for index, (brand_id, name) in enumerate(
        [(BRAND_A, "Window"), (BRAND_A, "Patio"), (BRAND_B, "Window"), (BRAND_B, "Rooftop")], start=1
    ):
        db.add(
            DiningTable(
                table_id=f"{index}-t{index}",
                brand_id=brand_id,
                table_name=name,
                table_slug=name.lower(),
                created_by="seed",
            )
        )
    db.commit()


def _compile(criteria) -> list[str]:
    return [str(clause.compile(compile_kwargs={"literal_binds": True})) for clause in criteria]


def test_brand_member_scope_ignores_client_brand_filter():
    regular = principal("u-1", BRAND_A, Role.REGULAR)

    criteria = resolve_scope(regular, DiningTable.brand_id, brand_filter=BRAND_B)

    assert _compile(criteria) == [f"dining_tables.brand_id = '{BRAND_A}'"]


def test_super_admin_search_takes_precedence_over_brand_filter():
    admin = principal("root", None, Role.SUPER_ADMIN)

    by_search = resolve_scope(
        admin,
        DiningTable.brand_id,
        search="win",
        search_columns=(DiningTable.table_name,),
        brand_filter=BRAND_B,
    )
    by_brand = resolve_scope(admin, DiningTable.brand_id, brand_filter=BRAND_B)
    everything = resolve_scope(admin, DiningTable.brand_id)

    assert len(by_search) == 1
    assert "brand_id" not in _compile(by_search)[0]
    assert _compile(by_brand) == [f"dining_tables.brand_id = '{BRAND_B}'"]
    assert everything == []


def test_listing_never_crosses_tenants_for_brand_roles():
    db = make_session()
    seed_brand(db, BRAND_A)
    seed_brand(db, BRAND_B, name="Brand B")
    _seed_tables(db)
    client = build_client(db, tables_router)

    response = client.get(
        "/api/v2/tables/get-all",
        params={"brand": BRAND_B},
        headers=auth_header(principal("u-1", BRAND_A, Role.ADMIN)),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["data_found"] == 2
    assert {row["brand"] for row in body["data"]} == {BRAND_A}
    assert all("brand_info" not in row for row in body["data"])


def test_super_admin_listing_carries_brand_info():
    db = make_session()
    seed_brand(db, BRAND_A)
    seed_brand(db, BRAND_B, name="Brand B")
    _seed_tables(db)
    client = build_client(db, tables_router)
    root = auth_header(principal("root", None, Role.SUPER_ADMIN))

    everything = client.get("/api/v2/tables/get-all", headers=root).json()
    only_b = client.get("/api/v2/tables/get-all", params={"brand": BRAND_B}, headers=root).json()
    searched = client.get(
        "/api/v2/tables/get-all", params={"brand": BRAND_B, "search": "window"}, headers=root
    ).json()

    assert everything["data_found"] == 4
    assert only_b["data_found"] == 2
    assert {row["brand_info"]["brand_name"] for row in only_b["data"]} == {"Brand B"}
    assert searched["data_found"] == 2
    assert {row["brand"] for row in searched["data"]} == {BRAND_A, BRAND_B}


def test_policy_table_decisions():
    assert is_allowed("supplier.create", Role.ADMIN) is True
    assert is_allowed("supplier.create", Role.REGULAR) is False
    assert is_allowed("plan.create", Role.CHAIRMAN) is False
    assert is_allowed("brand.list_all", Role.SUPER_ADMIN) is True
    with pytest.raises(KeyError):
        is_allowed("unknown.operation", Role.ADMIN)


def test_ensure_allowed_raises_forbidden():
    with pytest.raises(Forbidden) as exc:
        ensure_allowed(principal("u-1", BRAND_A, Role.REGULAR), "user.delete")

    assert exc.value.status_code == 403
    assert exc.value.message == "Forbidden access. Only authority can access"


def test_seniority_and_tenant_rules_for_user_management():
    admin = principal("u-admin", BRAND_A, Role.ADMIN)

    assert can_manage(Role.CHAIRMAN, Role.ADMIN) is True
    assert can_manage(Role.ADMIN, Role.ADMIN) is True
    assert can_manage(Role.ADMIN, Role.CHAIRMAN) is False

    with pytest.raises(Forbidden):
        ensure_can_manage(admin, Role.CHAIRMAN, BRAND_A)
    with pytest.raises(Forbidden):
        ensure_can_manage(admin, Role.REGULAR, BRAND_B)
    ensure_can_manage(admin, Role.REGULAR, BRAND_A)
    ensure_can_manage(principal("root", None, Role.SUPER_ADMIN), Role.CHAIRMAN, BRAND_B)


def test_role_parsing_accepts_spelling_variants():
    assert Role.parse("Super Admin") is Role.SUPER_ADMIN
    assert Role.parse("super-admin") is Role.SUPER_ADMIN
    assert Role.parse("CHAIRMAN") is Role.CHAIRMAN
    with pytest.raises(Unauthenticated):
        Role.parse("owner")


def test_claims_without_brand_are_rejected_for_brand_roles():
    with pytest.raises(Unauthenticated):
        Principal.from_claims({"user_id": "u-1", "brand_id": None, "role": "admin"})

    root = Principal.from_claims({"user_id": "root", "brand_id": None, "role": "super_admin"})
    assert root.is_super_admin is True


def test_missing_bearer_token_is_unauthenticated():
    with pytest.raises(Unauthenticated) as exc:
        get_current_principal(_build_request(), None)

    assert exc.value.status_code == 401
    assert exc.value.headers == {"WWW-Authenticate": "Bearer"}


def test_bearer_token_sets_principal_on_request_state():
    request = _build_request()
    who = principal("u-1", BRAND_A, Role.ADMIN)
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=create_access_token(who))

    resolved = get_current_principal(request, credentials)

    assert resolved == who
    assert request.state.principal == who


def test_revoked_identity_is_forbidden_before_any_handler():
    db = make_session()
    db.add(RemovedUser(user_id="u-gone", brand_id=BRAND_A, created_by="u-chairman"))
    db.commit()

    with pytest.raises(RevokedIdentity) as exc:
        get_active_principal(principal("u-gone", BRAND_A, Role.REGULAR), db)

    assert exc.value.status_code == 403


def test_revoked_identity_gets_403_on_every_route():
    db = make_session()
    seed_brand(db, BRAND_A)
    db.add(RemovedUser(user_id="u-gone", brand_id=BRAND_A, created_by="u-chairman"))
    db.commit()
    client = build_client(db, tables_router)
    headers = auth_header(principal("u-gone", BRAND_A, Role.ADMIN))

    listing = client.get("/api/v2/tables/get-all", headers=headers)
    creation = client.post("/api/v2/tables/create-table", json={"table_name": "T1"}, headers=headers)

    assert listing.status_code == 403
    assert creation.status_code == 403
    assert listing.json()["success"] is False
    assert db.query(DiningTable).count() == 0
