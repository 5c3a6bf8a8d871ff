"""
Prometheus metrics endpoint
"""

import hmac
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import Response

from paychain.infrastructure.settings import get_settings
from paychain.utils.metrics import CONTENT_TYPE_LATEST, get_metrics_output

router = APIRouter(tags=["metrics"])


async def verify_metrics_access(
    x_metrics_token: Optional[str] = Header(None, alias="X-Metrics-Token"),
) -> bool:
    """
    Access is granted if METRICS_PUBLIC=true, or METRICS_TOKEN is set and matches
    the X-Metrics-Token header.
    """
    settings = get_settings()

    if settings.METRICS_PUBLIC:
        return True

    if settings.METRICS_TOKEN and x_metrics_token:
        if hmac.compare_digest(x_metrics_token, settings.METRICS_TOKEN):
            return True

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Access to metrics endpoint denied. Set METRICS_PUBLIC=true or provide a valid X-Metrics-Token.",
    )


@router.get(
    "/metrics",
    summary="Prometheus metrics endpoint",
    description="Expose Prometheus metrics for observability. Protected by default (METRICS_PUBLIC=false).",
)
async def get_metrics(_: bool = Depends(verify_metrics_access)) -> Response:
    return Response(content=get_metrics_output(), media_type=CONTENT_TYPE_LATEST)
