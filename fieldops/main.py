import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from fieldops.core.config import (
    AUTO_CREATE_SQLITE_SCHEMA,
    CORS_ORIGINS,
    DATABASE_URL,
    DEV_SUPERADMIN_EMAIL,
    DEV_SUPERADMIN_PASSWORD,
    IS_TEST,
    UPLOADS_DIR,
)
from fieldops.core.database import Base, SessionLocal, engine
from fieldops.core.logging_setup import configure_logging
from fieldops.core.startup_checks import ensure_migrations_applied, validate_database_environment
from fieldops.middleware.observability import ObservabilityMiddleware
import fieldops.models  # registers every model on Base.metadata before create_all

from fieldops.routers.auth import router as auth_router
from fieldops.routers.companies import router as companies_router
from fieldops.routers.customers import router as customers_router
from fieldops.routers.invoices import router as invoices_router
from fieldops.routers.job_financials import router as job_financials_router
from fieldops.routers.jobs import router as jobs_router
from fieldops.routers.profile import router as profile_router
from fieldops.routers.service_catalogs import router as service_catalogs_router
from fieldops.routers.tasks import router as tasks_router
from fieldops.routers.users import router as users_router
from fieldops.routers.xero import router as xero_router
from fieldops.services.bootstrap import upsert_superadmin

configure_logging()

logger = logging.getLogger(__name__)
BOOTSTRAP_PREFIX = "[SUPERADMIN_BOOTSTRAP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini")))


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="FieldOps API",
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
app.add_middleware(ObservabilityMiddleware)

_uploads_path = Path(UPLOADS_DIR)
_uploads_path.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(_uploads_path)), name="uploads")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled error method=%s path=%s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def _bootstrap_superadmin() -> None:
    if not DEV_SUPERADMIN_PASSWORD:
        logger.info("%s skipped: configure DEV_SUPERADMIN_PASSWORD.", BOOTSTRAP_PREFIX)
        return

    db = SessionLocal()
    try:
        user, created = upsert_superadmin(db, email=DEV_SUPERADMIN_EMAIL, password=DEV_SUPERADMIN_PASSWORD)
        logger.info(
            "%s %s id=%s email=%s",
            BOOTSTRAP_PREFIX,
            "created" if created else "exists",
            user.id,
            user.email,
        )
    except Exception:
        logger.exception("%s ERROR bootstrap failed", BOOTSTRAP_PREFIX)
        raise
    finally:
        db.close()


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        if DATABASE_URL.startswith("sqlite") and AUTO_CREATE_SQLITE_SCHEMA:
            Base.metadata.create_all(bind=engine)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        if not IS_TEST:
            _bootstrap_superadmin()
    except Exception:
        logger.exception("[STARTUP] ERROR startup failed")
        raise


# Routers
app.include_router(auth_router)
app.include_router(profile_router)
app.include_router(companies_router)
app.include_router(users_router)
app.include_router(jobs_router)
app.include_router(job_financials_router)
app.include_router(customers_router)
app.include_router(invoices_router)
app.include_router(service_catalogs_router)
app.include_router(tasks_router)
app.include_router(xero_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
