r"""backend/prediction_service/api/v1/health.py

Health check endpoints.

These endpoints can be used by orchestrators and load balancers to verify
that the service is running.  The prediction engine is stateless, so the
only dependency reported is the optional external model; the service is
ready whether or not it is configured because fallbacks always apply.
"""

import time
from datetime import datetime, timezone

from fastapi import APIRouter

from ...core.dependencies import external_model_available

router = APIRouter()

_STARTED_AT = time.monotonic()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check() -> dict:
    """Return a basic health indicator with the model configuration."""
    external = external_model_available()
    return {
        "status": "ok",
        "timestamp": _timestamp(),
        "models": {
            "statistical": "available",
            "external": "available" if external else "not_configured",
        },
    }


@router.get("/health/live")
async def liveness() -> dict:
    return {
        "status": "alive",
        "timestamp": _timestamp(),
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
    }


@router.get("/health/ready")
async def readiness() -> dict:
    return {"status": "ready", "timestamp": _timestamp()}
