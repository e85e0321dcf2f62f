"""Scheduler-triggered maintenance endpoints.

Called by an external cron with ``Authorization: Bearer <CRON_SECRET>``.
When no secret is configured the endpoints are open in dev and test and
refuse everything in prod.
"""

from __future__ import annotations

import hmac
import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel

from tenantguard.api.dependencies import bearer_scheme, get_store
from tenantguard.core.config import SETTINGS
from tenantguard.core.errors import UnauthorizedError
from tenantguard.repos.store import Store
from tenantguard.services import maintenance

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])


def verify_cron_secret(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> None:
    secret = SETTINGS.cron_secret
    if secret is None:
        if SETTINGS.is_prod:
            logger.error("CRON_SECRET is not configured; refusing cron call")
            raise UnauthorizedError("Unauthorized")
        return
    supplied = credentials.credentials if credentials is not None else ""
    if not hmac.compare_digest(supplied.encode(), secret.encode()):
        logger.warning("Cron call with a bad secret rejected")
        raise UnauthorizedError("Unauthorized")


class DailyMaintenanceOut(BaseModel):
    success: bool = True
    orgs_refilled: int
    orgs_purged: int


class NotifyOut(BaseModel):
    success: bool = True
    reminders_reset: int
    credit_alerts_sent: int
    renewal_reminders_sent: int
    renewal_candidates: int


@router.post(
    "/daily-maintenance",
    response_model=DailyMaintenanceOut,
    dependencies=[Depends(verify_cron_secret)],
)
async def daily_maintenance(
    store: Annotated[Store, Depends(get_store)],
) -> DailyMaintenanceOut:
    """Free-credit refill followed by the purge of soft-deleted orgs."""
    result = await maintenance.run_daily_maintenance(store)
    return DailyMaintenanceOut(
        orgs_refilled=result.orgs_refilled, orgs_purged=result.orgs_purged
    )


@router.post(
    "/notify", response_model=NotifyOut, dependencies=[Depends(verify_cron_secret)]
)
async def notify(store: Annotated[Store, Depends(get_store)]) -> NotifyOut:
    result = await maintenance.run_notifications(store)
    return NotifyOut(
        reminders_reset=result.reminders_reset,
        credit_alerts_sent=result.credit_alerts_sent,
        renewal_reminders_sent=result.renewal_reminders_sent,
        renewal_candidates=result.renewal_candidates,
    )
