from __future__ import annotations

import threading
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ahaar.core.database import Base
from ahaar.core.errors import NotFound, PaymentRequired
from ahaar.models.brand import Brand
from ahaar.routers.suppliers import router as suppliers_router
from ahaar.routers.tables import router as tables_router
from ahaar.services import subscription
from ahaar.services.access_control import Role
from ahaar.services.subscription import check_subscription, expire_subscription, subscription_state
from ahaar.utils.clock import utcnow
from tests.fixtures_data import BRAND_A, auth_header, build_client, make_session, principal, seed_brand


def test_state_machine_transitions():
    now = utcnow()
    brand = Brand(brand_id=BRAND_A, brand_name="A", brand_slug="a", subscription_status=False)
    assert subscription_state(brand, now) == "no_plan"

    brand.selected_plan_id = "1-plan"
    brand.subscription_status = True
    brand.subscription_end_time = now + timedelta(days=1)
    assert subscription_state(brand, now) == "active"

    brand.subscription_end_time = now - timedelta(seconds=1)
    assert subscription_state(brand, now) == "expired"


def test_brand_without_plan_gets_402():
    db = make_session()
    seed_brand(db, BRAND_A, active=False)
    client = build_client(db, tables_router)

    response = client.get("/api/v2/tables/get-all", headers=auth_header(principal("u-1", BRAND_A, Role.CHAIRMAN)))

    assert response.status_code == 402
    assert response.json() == {
        "success": False,
        "message": "No plan selected. Please purchase a plan to continue.",
    }


def test_expired_subscription_gets_402_and_is_flipped():
    db = make_session()
    seed_brand(db, BRAND_A, days_left=-1)
    client = build_client(db, tables_router)

    response = client.get("/api/v2/tables/get-all", headers=auth_header(principal("u-1", BRAND_A, Role.ADMIN)))

    assert response.status_code == 402
    assert response.json()["message"] == "Your subscription is expired."
    db.expire_all()
    assert db.query(Brand).one().subscription_status is False


def test_subscription_gate_runs_before_role_checks():
    db = make_session()
    seed_brand(db, BRAND_A, days_left=-1)
    client = build_client(db, suppliers_router)

    response = client.post(
        "/api/v2/suppliers/add-supplier",
        json={"name": "Fresh Farm", "mobile1": "01911111111"},
        headers=auth_header(principal("u-1", BRAND_A, Role.REGULAR)),
    )

    assert response.status_code == 402


def test_super_admin_bypasses_the_gate():
    db = make_session()
    seed_brand(db, BRAND_A, active=False)
    client = build_client(db, tables_router)

    response = client.get("/api/v2/tables/get-all", headers=auth_header(principal("root", None, Role.SUPER_ADMIN)))

    assert response.status_code == 200


def test_active_subscription_passes():
    db = make_session()
    seed_brand(db, BRAND_A)

    check_subscription(db, BRAND_A)

    assert db.query(Brand).one().subscription_status is True


def test_unknown_brand_is_not_found():
    db = make_session()

    with pytest.raises(NotFound):
        check_subscription(db, "9-missing")


def test_expire_is_idempotent():
    db = make_session()
    seed_brand(db, BRAND_A, days_left=-1)

    assert expire_subscription(db, BRAND_A) is True
    assert expire_subscription(db, BRAND_A) is False


def test_expiry_flip_happens_once_under_concurrency(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'gate.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    seed_db = SessionLocal()
    seed_brand(seed_db, BRAND_A, days_left=-1)
    seed_db.close()

    workers = 10
    sessions = [SessionLocal() for _ in range(workers)]
    for session in sessions:
        # every worker starts from the same stale "still active" snapshot
        assert session.query(Brand).filter(Brand.brand_id == BRAND_A).one().subscription_status is True

    barrier = threading.Barrier(workers)
    flips: list[bool] = []
    denials: list[PaymentRequired] = []
    lock = threading.Lock()
    real_expire = subscription.expire_subscription

    def recording_expire(db, brand_id):
        flipped = real_expire(db, brand_id)
        with lock:
            flips.append(flipped)
        return flipped

    def worker(db):
        barrier.wait()
        try:
            check_subscription(db, BRAND_A)
        except PaymentRequired as exc:
            with lock:
                denials.append(exc)
        finally:
            db.close()

    with patch("ahaar.services.subscription.expire_subscription", side_effect=recording_expire):
        threads = [threading.Thread(target=worker, args=(session,)) for session in sessions]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

    assert len(denials) == workers
    assert flips.count(True) == 1
    check_db = SessionLocal()
    assert check_db.query(Brand).one().subscription_status is False
    check_db.close()


def test_expiry_boundary_is_exact():
    now = utcnow()
    brand = Brand(
        brand_id=BRAND_A,
        brand_name="A",
        brand_slug="a",
        selected_plan_id="1-plan",
        subscription_status=True,
        subscription_end_time=now,
    )
    assert subscription_state(brand, now) == "active"

    brand.subscription_end_time = now - timedelta(milliseconds=1)
    assert subscription_state(brand, now) == "expired"


def test_gate_denies_one_millisecond_after_the_end_time():
    db = make_session()
    brand = seed_brand(db, BRAND_A)
    brand.subscription_end_time = utcnow() - timedelta(milliseconds=1)
    db.commit()

    with pytest.raises(PaymentRequired):
        check_subscription(db, BRAND_A)

    db.expire_all()
    assert db.query(Brand).one().subscription_status is False
