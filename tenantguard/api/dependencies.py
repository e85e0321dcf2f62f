"""Request-scoped dependencies shared by every router.

The pieces, in the order a request meets them:

  get_store      PgStore over a request session, or the in-memory store
  get_identity   verified caller from ``Authorization: Bearer`` or the
                 ``session`` cookie; None when absent or invalid
  procedure()    resolves the AuthorizationContext, runs the guard chain
                 for the access level and hands the narrowed context to
                 the endpoint

Usage::

    @router.post("/v1/projects")
    async def create(
        ctx: Annotated[TenantContext, Depends(procedure("project.create", TENANT_SCOPED))],
    ): ...
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncGenerator
from typing import Annotated, Any
from uuid import UUID

import jwt
from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tenantguard.core.config import SETTINGS
from tenantguard.core.errors import ProcedureError
from tenantguard.core.guards import AccessLevel, guard_for
from tenantguard.core.metrics import AUTHZ_DENIALS
from tenantguard.db import engine as db_engine
from tenantguard.middleware.request_context import org_id_var, procedure_var, user_id_var
from tenantguard.models.context import Identity
from tenantguard.repos.pg_store import PgStore
from tenantguard.repos.store import Store, memory_store
from tenantguard.services import payment_provider, token_service
from tenantguard.services.context_resolver import ensure_user, resolve_context
from tenantguard.services.payment_provider import PaymentProvider

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"
ORG_COOKIE = "current-org-id"
ORG_HEADER = "X-Org-Id"
ORG_COOKIE_MAX_AGE = 60 * 60 * 24 * 365

bearer_scheme = HTTPBearer(auto_error=False)


async def get_store() -> AsyncGenerator[Store, None]:
    if db_engine.async_session_factory is None:
        yield memory_store
        return
    async with db_engine.session_scope() as session:
        yield PgStore(session)


def get_identity(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Identity | None:
    """Bearer token first, then the session cookie.

    A bad token is treated like no token: public procedures still work
    and protected ones answer UNAUTHORIZED from the guard chain.
    """
    try:
        if credentials is not None:
            claims = token_service.decode_access_token(credentials.credentials)
        elif cookie := request.cookies.get(SESSION_COOKIE):
            claims = token_service.decode_session_token(cookie)
        else:
            return None
        return token_service.identity_from_claims(claims)
    except jwt.ExpiredSignatureError:
        logger.info("Expired token ignored")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token ignored: %s", e)
        return None
    except jwt.PyJWKClientError as e:
        logger.warning("Token key lookup failed: %s", e)
        return None


def get_payment_provider() -> PaymentProvider:
    return payment_provider.payment_provider


def get_tenant_hint(request: Request) -> str | None:
    return request.headers.get(ORG_HEADER) or request.cookies.get(ORG_COOKIE)


def procedure(name: str, level: AccessLevel):
    """Dependency factory: authorize one named procedure.

    In dev mode the whole procedure (guards plus handler) is timed and
    logged as ``[procedure] <name> - <ms>ms``, with an ``(error)`` marker
    when it raised.
    """
    guard = guard_for(level, admin_emails=SETTINGS.super_admin_emails)

    async def _dependency(
        request: Request,
        store: Annotated[Store, Depends(get_store)],
        identity: Annotated[Identity | None, Depends(get_identity)],
    ) -> AsyncGenerator[Any, None]:
        start = time.perf_counter()
        procedure_var.set(name)

        if identity is not None:
            await ensure_user(identity, store)
            user_id_var.set(str(identity.user_id))
        ctx = await resolve_context(identity, get_tenant_hint(request), store)

        try:
            narrowed = guard(ctx)
        except ProcedureError as e:
            AUTHZ_DENIALS.labels(procedure=name, kind=e.kind.value).inc()
            logger.info("Procedure %s denied: %s", name, e.kind.value)
            _log_timing(name, start, error=True)
            raise

        if ctx.org_id is not None:
            org_id_var.set(str(ctx.org_id))
        try:
            yield narrowed
        except Exception:
            _log_timing(name, start, error=True)
            raise
        _log_timing(name, start, error=False)

    return _dependency


def _log_timing(name: str, start: float, *, error: bool) -> None:
    if not SETTINGS.is_dev:
        return
    elapsed_ms = round((time.perf_counter() - start) * 1000)
    suffix = " (error)" if error else ""
    logger.info("[procedure] %s - %dms%s", name, elapsed_ms, suffix)


def set_org_cookie(response: Response, org_id: UUID) -> None:
    response.set_cookie(
        ORG_COOKIE,
        str(org_id),
        max_age=ORG_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=SETTINGS.is_prod,
    )
