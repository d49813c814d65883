"""Health & Readiness Probes — liveness and readiness endpoints for container orchestration.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready always returns 200: the gateway serves without the
      DevOps session; its status is reported, not required
"""

import logging
from fastapi import APIRouter, Depends, status

from app.infrastructure.auth_state import AuthenticationState, get_auth_state
from app.infrastructure.subscriber_hub import SubscriberHub, get_hub

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "event-grid-gateway",
        "version": "1.0.0",
    }


@router.get("/ready")
async def readiness_check(
    auth: AuthenticationState = Depends(get_auth_state),
    hub: SubscriberHub = Depends(get_hub),
):
    """Readiness probe — reports DevOps session state and subscriber count."""
    return {
        "status": "ready",
        "checks": {
            "devops_session": auth.status(),
            "subscribers": hub.subscriber_count,
        },
    }
