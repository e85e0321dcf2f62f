"""Prometheus scrape endpoint, text exposition format.

Besides the HTTP series it exposes the authorization counters
(``authz_denials_total``, ``abuse_guard_rejections_total``,
``domain_errors_total``) and the maintenance job series.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
