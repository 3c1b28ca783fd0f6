"""
Subscription Billing Backend API
Checkout, Dodo Payments webhooks, subscription cancellation and profile queries.
"""
from dotenv import load_dotenv
load_dotenv()

import logging
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import payments, subscriptions, users, webhooks
from app.core import config
from app.core.errors import BillingError, InvalidInput, PayloadTooLarge
from app.db.base import Base
from app.db.session import SQLALCHEMY_DATABASE_URL, engine
from app.dependencies.rate_limit import RateLimiter, global_rate_limit
# Import all models to ensure they're registered with Base
from app.models import Purchase, User  # noqa: F401
from app.services.dodo_client import build_dodo_client

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True,  # Override any existing configuration
)

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def run_migrations() -> None:
    """Run Alembic migrations on startup. Uses alembic.ini and DATABASE_URL.
    Fails startup if migrations fail, so the DB is never left out of sync."""
    project_root = Path(__file__).resolve().parent.parent
    alembic_ini = project_root / "alembic.ini"
    if not alembic_ini.exists():
        logger.warning("alembic.ini not found, skipping Alembic migrations")
        return
    if not config.DATABASE_URL:
        logger.error("DATABASE_URL is not set. Alembic migrations will not run.")
        return
    alembic_cfg = Config(str(alembic_ini))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", SQLALCHEMY_DATABASE_URL)
    alembic_cfg.attributes["configure_logger"] = False
    try:
        command.upgrade(alembic_cfg, "head")
        logger.info("Alembic migrations completed successfully")
    except Exception as e:
        logger.exception("Alembic migration failed: %s", e)
        raise


def allowed_origins() -> list:
    origins = ["http://localhost:3000", "https://localhost:3000", config.FRONTEND_URL]
    return list(dict.fromkeys(o for o in origins if o))


async def billing_error_handler(request: Request, exc: BillingError):
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message}, headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info("Rejected request body on %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid request"})


def create_app() -> FastAPI:
    app = FastAPI(title="Subscription Billing Backend")
    app.state.rate_limiter = RateLimiter()
    app.state.dodo_client = None

    @app.on_event("startup")
    async def startup_event():
        logger.info("Loaded environment variables: %s", config.config_summary())

        Base.metadata.create_all(bind=engine)
        if config.RUN_MIGRATIONS:
            run_migrations()

        # Built once and shared; requests needing it get 503 when this is None
        app.state.dodo_client = build_dodo_client()

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.dodo_client is not None:
            await app.state.dodo_client.aclose()
            app.state.dodo_client = None

    @app.middleware("http")
    async def limit_json_body(request: Request, call_next):
        if request.url.path.startswith("/api/webhooks"):
            return await call_next(request)
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                size = int(content_length)
            except ValueError:
                return JSONResponse(status_code=InvalidInput.status_code, content={"error": InvalidInput.message})
            if size > config.MAX_JSON_BODY_BYTES:
                logger.info("Rejected %d byte body on %s", size, request.url.path)
                return JSONResponse(status_code=PayloadTooLarge.status_code, content={"error": PayloadTooLarge.message})
        return await call_next(request)

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BillingError, billing_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    @app.get("/")
    async def root():
        return {"message": "Server is running"}

    limited = [Depends(global_rate_limit)]
    # Webhooks are exempt from the per-IP limit; Dodo delivers from a small set of addresses
    app.include_router(webhooks.router, prefix="/api/webhooks", tags=["Webhooks"])
    app.include_router(payments.router, prefix="/api/payments", tags=["Payments"], dependencies=limited)
    app.include_router(users.router, prefix="/api/user", tags=["Users"], dependencies=limited)
    app.include_router(subscriptions.router, prefix="/api/subscriptions", tags=["Subscriptions"], dependencies=limited)
    return app


app = create_app()
