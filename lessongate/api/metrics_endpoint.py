"""Prometheus metrics endpoint.

Scraped by Prometheus; returns the text exposition format, not JSON.
Restrict it to the scraper's network in production: request rates and
block reasons reveal more than a learner should see.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
