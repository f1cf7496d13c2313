"""Prometheus scrape endpoint.

Serves the text exposition format, including the HTTP metrics and the
progress_transitions_total, graded_attempts_total and
report_cache_operations_total counters.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
