"""Route Dependencies — wires collaborators into the services per request.

Invariants:
    - Services receive Protocol-typed collaborators only
    - The build trigger is None unless a DevOps session exists AND a target
      project/definition is configured
"""

from fastapi import Depends

from app.config import Settings, get_settings
from app.core.boundary_protocols import (
    AuthenticationStatus, BroadcastSink, BuildTrigger,
)
from app.infrastructure.auth_state import get_auth_state
from app.infrastructure.devops_client import DevOpsSession, get_devops_session
from app.infrastructure.subscriber_hub import SubscriberHub, get_hub
from app.services.dispatch_router import DispatchRouter
from app.services.validation_handler import ValidationHandler


def get_broadcast_sink(hub: SubscriberHub = Depends(get_hub)) -> BroadcastSink:
    return hub


def get_build_trigger(
    session: DevOpsSession | None = Depends(get_devops_session),
    settings: Settings = Depends(get_settings),
) -> BuildTrigger | None:
    if session is None or not settings.build_trigger_configured:
        return None
    return session


def get_dispatch_router(
    sink: BroadcastSink = Depends(get_broadcast_sink),
    auth: AuthenticationStatus = Depends(get_auth_state),
    trigger: BuildTrigger | None = Depends(get_build_trigger),
) -> DispatchRouter:
    return DispatchRouter(sink, auth, trigger)


def get_validation_handler(
    sink: BroadcastSink = Depends(get_broadcast_sink),
) -> ValidationHandler:
    return ValidationHandler(sink)
