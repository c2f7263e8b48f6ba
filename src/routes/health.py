"""
Health and metrics endpoints

/health is a liveness probe for load balancers. /metrics exposes the
Prometheus registry in the text exposition format.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from src.config import Config

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health", tags=["health"])
async def health_check(request: Request):
    """
    Simple health check endpoint

    Always returns HTTP 200 while the process is serving. rate_limits reports
    whether the limiters are attached and the sweeper task is alive.
    """
    services = getattr(request.app.state, "rate_limits", None)
    return {
        "status": "healthy",
        "service": Config.SERVICE_NAME,
        "environment": Config.APP_ENV,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "rate_limits": {
            "initialized": services is not None,
            "sweeper_running": services.sweeper.is_running if services else False,
        },
    }


@router.get("/metrics", tags=["monitoring"], include_in_schema=False)
async def prometheus_metrics():
    """Prometheus exposition format metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
