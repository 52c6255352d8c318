from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from starlette.responses import JSONResponse, Response

from saaskit.api.billing import router as billing_router
from saaskit.api.stripe_webhooks import router as stripe_webhooks_router
from saaskit.config import settings, validate_settings
from saaskit.db import SessionLocal
from saaskit.errors import register_error_handlers
from saaskit.logging import configure_logging
from saaskit.observability import ObservabilityMiddleware
from saaskit.services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[arg-type]
    # ── Startup ──────────────────────────────────────────
    warnings = validate_settings(settings)
    for w in warnings:
        logger.warning("Config warning: %s", w)

    # Tests install their own gateway before startup.
    if getattr(app.state, "stripe_gateway", None) is None:
        app.state.stripe_gateway = StripeGateway.from_settings(settings)

    logger.info("Application started (pid=%s)", os.getpid())
    yield

    # ── Shutdown ─────────────────────────────────────────
    logger.info("Application shutting down")


app = FastAPI(title="SaaS Kit Billing API", lifespan=lifespan)
configure_logging()

# ── Middleware (order matters: last added = first executed) ──
register_error_handlers(app)

cors_origins = [
    o.strip()
    for o in settings.cors_origins.split(",")
    if o.strip()
]
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-Id"],
    )

app.add_middleware(ObservabilityMiddleware)


def _include_api_router(router: object, dependencies: list[Any] | None = None) -> None:
    app.include_router(router, dependencies=dependencies)  # type: ignore[arg-type]
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)  # type: ignore[arg-type]


_include_api_router(stripe_webhooks_router)
_include_api_router(billing_router)


# ── Health Checks ────────────────────────────────────────


@app.get("/health")
def health_check() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@app.get("/health/ready")
def readiness_check() -> JSONResponse:
    """Readiness probe: the database must answer."""
    checks: dict[str, str] = {}
    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            checks["database"] = "ok"
        finally:
            db.close()
    except Exception as e:
        logger.warning("Readiness check failed: %s", e)
        checks["database"] = f"error: {e}"

    all_ok = all(v == "ok" for v in checks.values())
    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={"status": "ok" if all_ok else "degraded", "checks": checks},
    )


@app.get("/metrics")
def metrics() -> Response:
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
