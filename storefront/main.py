import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.core.config import CORS_ORIGINS, DATABASE_URL, ENV
from storefront.core.database import Base, SessionLocal, engine
from storefront.core.errors import register_exception_handlers
from storefront.core.logging_setup import configure_logging
from storefront.core.responses import envelope
from storefront.core.startup_checks import ensure_migrations_applied, validate_database_environment
from storefront.middleware.observability import ObservabilityMiddleware
import storefront.models  # noqa: F401  registers every table on Base.metadata

from storefront.services.users import upsert_admin_user
from storefront.routers import (
    auth,
    banners,
    categories,
    coupons,
    customers,
    internal_metrics,
    orders,
    products,
    users,
)

configure_logging()

logger = logging.getLogger(__name__)
BOOTSTRAP_PREFIX = "[ADMIN_BOOTSTRAP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini")))

ROUTERS = (auth, products, categories, orders, coupons, banners, customers, users, internal_metrics)


def _bootstrap_initial_admin() -> None:
    """Seed or promote the admin named by DEV_ADMIN_* so a fresh database is usable."""
    password = os.getenv("DEV_ADMIN_PASSWORD", "").strip()
    if not password:
        logger.info("%s skipped: configure DEV_ADMIN_PASSWORD.", BOOTSTRAP_PREFIX)
        return

    email = os.getenv("DEV_ADMIN_EMAIL", "").strip() or "admin@example.com"
    name = os.getenv("DEV_ADMIN_NAME", "").strip() or "Admin"

    with SessionLocal() as db:
        try:
            admin, created = upsert_admin_user(db, email=email, name=name, password=password)
        except Exception:
            logger.exception("%s failed email=%s", BOOTSTRAP_PREFIX, email)
            raise
        logger.info("%s %s id=%s email=%s", BOOTSTRAP_PREFIX, "created" if created else "updated", admin.id, admin.email)


def _startup_tasks() -> None:
    logger.info("starting storefront api env=%s", ENV)
    validate_database_environment()
    if DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
    _bootstrap_initial_admin()


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield
    engine.dispose()


app = FastAPI(title="Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)
register_exception_handlers(app)

for module in ROUTERS:
    app.include_router(module.router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/api/health")
def health():
    return envelope({"status": "healthy", "env": ENV}, "Server is running")
