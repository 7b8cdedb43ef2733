# cabinetry/main.py
import time

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from cabinetry import models  # noqa: F401  (registers SQLAlchemy models)
from cabinetry.core.errors import register_error_handlers
from cabinetry.core.logging_config import logger, setup_logging
from cabinetry.core.rate_limit import limiter
from cabinetry.core.settings import settings
from cabinetry.db import Base, engine
from cabinetry.middleware.request_id import RequestIdMiddleware
from cabinetry.observability.metrics import http_request_latency_hist, router as metrics_router
from cabinetry.routers import (
    admin_catalog,
    admin_messages,
    admin_orders,
    admin_quotes,
    admin_shipping,
    auth,
    carts,
    catalog,
    files,
    portal,
    shipping,
)

setup_logging()

if settings.SENTRY_DSN:
    sentry_sdk.init(dsn=settings.SENTRY_DSN, integrations=[FastApiIntegration()], traces_sample_rate=0.1)


# ----------------------------------------------------
# App init
# ----------------------------------------------------
app = FastAPI(title=settings.APP_NAME, version="0.1.0")
logger.info("startup", service="cabinetry-api")


# ----------------------------------------------------
# Health
# ----------------------------------------------------
@app.get("/health", include_in_schema=True)
def health() -> dict:
    return {"status": "ok"}


# ----------------------------------------------------
# Access log
# ----------------------------------------------------
@app.middleware("http")
async def access_log(request: Request, call_next):
    # request_id and path are already bound by RequestIdMiddleware
    started = time.perf_counter()
    log = logger.bind(method=request.method, ip=request.client.host if request.client else None)
    try:
        response = await call_next(request)
    except Exception:
        log.exception("request_failed")
        raise
    elapsed = time.perf_counter() - started
    http_request_latency_hist.labels(method=request.method, status=str(response.status_code)).observe(elapsed)
    log.info("request_finished", status_code=response.status_code, latency_ms=round(elapsed * 1000, 2))
    return response


# ----------------------------------------------------
# Middleware
# ----------------------------------------------------
app.add_middleware(RequestIdMiddleware)
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RateLimitExceeded)
def ratelimit_handler(request: Request, exc: RateLimitExceeded):
    return PlainTextResponse(str(exc), status_code=429)


register_error_handlers(app)


# ----------------------------------------------------
# Routers
# ----------------------------------------------------
app.include_router(auth.router)
app.include_router(catalog.router)
app.include_router(carts.router)
app.include_router(portal.router)
app.include_router(files.router)
app.include_router(shipping.router)

app.include_router(admin_catalog.router)
app.include_router(admin_quotes.router)
app.include_router(admin_orders.router)
app.include_router(admin_shipping.router)
app.include_router(admin_messages.router)
app.include_router(carts.admin_router)
app.include_router(carts.admin_carts_router)
app.include_router(files.admin_router)

app.include_router(metrics_router)  # /metrics


# ----------------------------------------------------
# Startup
# ----------------------------------------------------
@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
