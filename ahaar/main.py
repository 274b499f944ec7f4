import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from ahaar.core.config import (
    CORS_ORIGINS,
    DATABASE_URL,
    RATE_LIMIT_ENABLED,
    SUPER_ADMIN_EMAIL,
    SUPER_ADMIN_MOBILE,
    SUPER_ADMIN_NAME,
    SUPER_ADMIN_PASSWORD,
    UPLOADS_DIR,
)
from ahaar.core.database import Base, SessionLocal, engine
from ahaar.core.errors import register_exception_handlers
from ahaar.core.logging_setup import configure_logging
from ahaar.core.startup_checks import ensure_migrations_applied, validate_database_environment, validate_secrets
from ahaar.middleware.observability import ObservabilityMiddleware
from ahaar.middleware.rate_limit import ClientRateLimitMiddleware
from ahaar.middleware.security_headers import SecurityHeadersMiddleware
import ahaar.models  # registers every table on Base.metadata

from ahaar.routers.brands import router as brands_router
from ahaar.routers.categories import router as categories_router
from ahaar.routers.internal_metrics import router as internal_metrics_router
from ahaar.routers.members import router as members_router
from ahaar.routers.menu_items import router as menu_items_router
from ahaar.routers.plans import router as plans_router
from ahaar.routers.sold_invoices import router as sold_invoices_router
from ahaar.routers.staffs import router as staffs_router
from ahaar.routers.suppliers import router as suppliers_router
from ahaar.routers.tables import router as tables_router
from ahaar.routers.users import router as users_router
from ahaar.services.accounts import BOOTSTRAP_PREFIX, ensure_super_admin

configure_logging()

logger = logging.getLogger(__name__)
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini")))


def _bootstrap_super_admin() -> None:
    if not SUPER_ADMIN_EMAIL or not SUPER_ADMIN_PASSWORD:
        logger.info("%s skipped: configure SUPER_ADMIN_EMAIL and SUPER_ADMIN_PASSWORD", BOOTSTRAP_PREFIX)
        return

    db = SessionLocal()
    try:
        ensure_super_admin(
            db,
            email=SUPER_ADMIN_EMAIL,
            password=SUPER_ADMIN_PASSWORD,
            name=SUPER_ADMIN_NAME,
            mobile=SUPER_ADMIN_MOBILE,
        )
    except Exception:
        logger.exception("%s ERROR bootstrap failed", BOOTSTRAP_PREFIX)
        raise
    finally:
        db.close()


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        validate_secrets()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        _bootstrap_super_admin()
    except Exception:
        logger.exception("%s ERROR startup failed", BOOTSTRAP_PREFIX)
        raise


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="Ahaar Restaurant API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
if RATE_LIMIT_ENABLED:
    app.add_middleware(ClientRateLimitMiddleware)
else:
    logger.warning("[RATE_LIMIT] Disabled via RATE_LIMIT_ENABLED=false")
app.add_middleware(ObservabilityMiddleware)

register_exception_handlers(app)

Path(UPLOADS_DIR).mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=UPLOADS_DIR), name="uploads")

# Routers
app.include_router(users_router)
app.include_router(brands_router)
app.include_router(plans_router)
app.include_router(tables_router)
app.include_router(categories_router)
app.include_router(menu_items_router)
app.include_router(members_router)
app.include_router(staffs_router)
app.include_router(suppliers_router)
app.include_router(sold_invoices_router)
app.include_router(internal_metrics_router)


@app.get("/")
def root():
    return {"success": True, "message": "Server is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
