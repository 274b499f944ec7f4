from fastapi.testclient import TestClient


REQUIRED_ROUTES = {
    "/api/v2/users/create-user",
    "/api/v2/users/verify/{token}",
    "/api/v2/users/auth-user-login",
    "/api/v2/users/auth-manage-token",
    "/api/v2/brands/current-brand",
    "/api/v2/plans/purchase-plan",
    "/api/v2/tables/get-all",
    "/api/v2/menu-items/get-all",
    "/api/v2/members/member/{mobile}",
    "/api/v2/staffs/sell-record/{month}",
    "/api/v2/suppliers/add-supplier",
    "/api/v2/sold-invoices/add-sold-invoice",
    "/api/v2/internal/metrics",
}


def test_api_startup_and_router_registration(monkeypatch):
    from ahaar import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    with TestClient(main.app) as client:
        response = client.get("/", headers={"X-Request-ID": "req-123"})
        missing = client.get("/api/v2/nothing-here")

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Server is running"}
    assert response.headers["X-Request-ID"] == "req-123"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "message": "Route not found!"}

    paths = {route.path for route in main.app.routes}
    assert REQUIRED_ROUTES.issubset(paths)
