import os
from dotenv import load_dotenv

# Load .env from the project root
load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./ahaar.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_TEST = ENV_NORMALIZED == "test"
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

API_PREFIX = "/api/v2"

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and not IS_PROD:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

# Auth (JWT)
_DEV_ACCESS_SECRET = "dev-access-secret-change-me"
_DEV_REFRESH_SECRET = "dev-refresh-secret-change-me"
_DEV_EMAIL_SECRET = "dev-email-secret-change-me"

JWT_ACCESS_SECRET = os.getenv("JWT_ACCESS_SECRET", "" if IS_PROD else _DEV_ACCESS_SECRET)
JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", "" if IS_PROD else _DEV_REFRESH_SECRET)
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "10"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))

EMAIL_TOKEN_SECRET = os.getenv("EMAIL_TOKEN_SECRET", "" if IS_PROD else _DEV_EMAIL_SECRET)
EMAIL_TOKEN_MAX_AGE_SECONDS = int(os.getenv("EMAIL_TOKEN_MAX_AGE_SECONDS", "300"))

# Links sent by email point at the API, redirects point at the frontend
CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:8000").rstrip("/")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/")

REFRESH_COOKIE_NAME = "refreshToken"
REFRESH_COOKIE_SECURE = _flag("REFRESH_COOKIE_SECURE", "1")
REFRESH_COOKIE_HTTPONLY = _flag("REFRESH_COOKIE_HTTPONLY", "1")
REFRESH_COOKIE_SAMESITE = os.getenv("REFRESH_COOKIE_SAMESITE", "none").strip().lower()
if REFRESH_COOKIE_SAMESITE not in {"lax", "strict", "none"}:
    REFRESH_COOKIE_SAMESITE = "none"
REFRESH_COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN", "").strip() or None

# Rate limiting
RATE_LIMIT_ENABLED = _flag("RATE_LIMIT_ENABLED", "1")
RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "10"))
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))

# Subscription
SUBSCRIPTION_DAYS = int(os.getenv("SUBSCRIPTION_DAYS", "30"))

# Mail
MAIL_PROVIDER = os.getenv("MAIL_PROVIDER", "console").strip().lower()
SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY", "")
MAIL_FROM = os.getenv("MAIL_FROM", "no-reply@ahaar.local")
MAIL_REPLY_TO = os.getenv("MAIL_REPLY_TO", "")

# Assets
ASSET_STORE = os.getenv("ASSET_STORE", "local").strip().lower()
UPLOADS_DIR = os.getenv("UPLOADS_DIR", "uploads")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))

# Super admin bootstrap
SUPER_ADMIN_EMAIL = os.getenv("SUPER_ADMIN_EMAIL", "").strip().lower()
SUPER_ADMIN_PASSWORD = os.getenv("SUPER_ADMIN_PASSWORD", "").strip()
SUPER_ADMIN_NAME = os.getenv("SUPER_ADMIN_NAME", "Super Admin").strip() or "Super Admin"
SUPER_ADMIN_MOBILE = os.getenv("SUPER_ADMIN_MOBILE", "00000000000").strip()
