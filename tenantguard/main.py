from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tenantguard.api.admin import router as admin_router
from tenantguard.api.auth import router as auth_router
from tenantguard.api.billing import router as billing_router
from tenantguard.api.cron import router as cron_router
from tenantguard.api.health import router as health_router
from tenantguard.api.invites import router as invites_router
from tenantguard.api.metrics_endpoint import router as metrics_router
from tenantguard.api.orgs import router as orgs_router
from tenantguard.api.projects import router as projects_router
from tenantguard.api.webhooks import router as webhooks_router
from tenantguard.core.config import SETTINGS
from tenantguard.core.errors import (
    DomainError,
    ErrorKind,
    ProcedureError,
    translate_error,
)
from tenantguard.core.logging import setup_logging
from tenantguard.core.metrics import DOMAIN_ERRORS
from tenantguard.db.engine import lifespan_db
from tenantguard.db.redis import lifespan_redis
from tenantguard.middleware.metrics import MetricsMiddleware
from tenantguard.middleware.request_context import (
    RequestContextFilter,
    RequestContextMiddleware,
)

# Configure logging before anything else runs.
setup_logging(
    SETTINGS.log_level,
    json_format=SETTINGS.log_json,
    filters=(RequestContextFilter(),),
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Teardown runs in reverse order: Redis closes before the engine.
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="tenant-guard",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[SETTINGS.site_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last added runs first: RequestContext -> Metrics -> CORS -> route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


# --- Error translation ---


def _error_response(err: ProcedureError) -> JSONResponse:
    DOMAIN_ERRORS.labels(code=err.kind.value).inc()
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


@app.exception_handler(ProcedureError)
async def procedure_error_handler(_request: Request, exc: ProcedureError) -> JSONResponse:
    return _error_response(exc)


@app.exception_handler(DomainError)
async def domain_error_handler(_request: Request, exc: DomainError) -> JSONResponse:
    return _error_response(translate_error(exc))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid input")
    if location:
        message = f"{location}: {message}"
    return _error_response(ProcedureError(ErrorKind.BAD_REQUEST, message))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    err = translate_error(exc)
    if err.kind is ErrorKind.INTERNAL_SERVER_ERROR:
        logger.error(
            "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
        )
    return _error_response(err)


app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(orgs_router)
app.include_router(invites_router)
app.include_router(projects_router)
app.include_router(billing_router)
app.include_router(admin_router)
app.include_router(cron_router)
app.include_router(webhooks_router)

logger.info(
    "tenant-guard started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
