import os
from dotenv import load_dotenv

# Load .env from the project root
load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./fieldops.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_TEST = ENV_NORMALIZED == "test"
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    ]

# Auth (JWT)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", str(60 * 24 * 7)))

# Uploads
UPLOADS_DIR = os.getenv("UPLOADS_DIR", "uploads")
AVATAR_MAX_BYTES = int(os.getenv("AVATAR_MAX_BYTES", str(5 * 1024 * 1024)))

# Invoicing
DEFAULT_TAX_RATE = os.getenv("DEFAULT_TAX_RATE", "10")
INVOICE_NUMBER_PREFIX = os.getenv("INVOICE_NUMBER_PREFIX", "INV")

# Xero
XERO_CLIENT_ID = os.getenv("XERO_CLIENT_ID", "").strip()
XERO_CLIENT_SECRET = os.getenv("XERO_CLIENT_SECRET", "").strip()
XERO_REDIRECT_URI = os.getenv("XERO_REDIRECT_URI", "http://localhost:8000/api/xero/callback").strip()
XERO_SCOPES = os.getenv(
    "XERO_SCOPES",
    "openid profile email offline_access accounting.transactions accounting.contacts",
).strip()
XERO_AUTHORIZE_URL = os.getenv("XERO_AUTHORIZE_URL", "https://login.xero.com/identity/connect/authorize")
XERO_TOKEN_URL = os.getenv("XERO_TOKEN_URL", "https://identity.xero.com/connect/token")
XERO_CONNECTIONS_URL = os.getenv("XERO_CONNECTIONS_URL", "https://api.xero.com/connections")
XERO_API_BASE_URL = os.getenv("XERO_API_BASE_URL", "https://api.xero.com/api.xro/2.0")
XERO_TIMEOUT_SECONDS = float(os.getenv("XERO_TIMEOUT_SECONDS", "15"))

# Bootstrap
DEV_SUPERADMIN_EMAIL = os.getenv("DEV_SUPERADMIN_EMAIL", "superadmin@fieldops.local").strip()
DEV_SUPERADMIN_PASSWORD = os.getenv("DEV_SUPERADMIN_PASSWORD", "").strip()
AUTO_CREATE_SQLITE_SCHEMA = os.getenv("AUTO_CREATE_SQLITE_SCHEMA", "1").strip().lower() in _TRUTHY
