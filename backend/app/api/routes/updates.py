"""Updates Ingress — the single webhook endpoint publishers deliver to.

Invariants:
    - OPTIONS answers the webhook abuse-protection handshake: echoes the caller's
      origin and allows any delivery rate, no body
    - POST classifies the request once via RequestKind; unknown kinds are 400
    - Malformed bodies are 400 and reach no subscriber
    - Notifications return 200 with no body once every dispatch was attempted,
      regardless of individual broadcast outcomes

Design Decisions:
    - Route stays thin: decoding in core/, policy in services/
    - Auth readiness wait is opt-in (auth_wait_timeout_seconds); by default a
      request racing startup is routed as unauthenticated
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from app.api.dependencies import get_dispatch_router, get_validation_handler
from app.config import Settings, get_settings
from app.core.domain_types import EVENT_KIND_HEADER, RequestKind, SourceFormat
from app.core.errors import MalformedEventError, UnrecognizedRequestKindError
from app.core.event_decoder import (
    decode_cloud_event, decode_grid_events, detect_format,
)
from app.infrastructure.auth_state import AuthenticationState, get_auth_state
from app.services.dispatch_router import DispatchRouter
from app.services.validation_handler import ValidationHandler

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/updates", tags=["updates"])

REQUEST_ORIGIN_HEADER = "WebHook-Request-Origin"
REQUEST_CALLBACK_HEADER = "WebHook-Request-Callback"
REQUEST_RATE_HEADER = "WebHook-Request-Rate"
ALLOWED_ORIGIN_HEADER = "WebHook-Allowed-Origin"
ALLOWED_RATE_HEADER = "WebHook-Allowed-Rate"


@router.options("")
async def webhook_handshake(request: Request) -> Response:
    """Answer the publisher's delivery pre-flight."""
    origin = request.headers.get(REQUEST_ORIGIN_HEADER)
    logger.info(
        "Webhook pre-flight from %s (callback=%s, rate=%s)",
        origin,
        request.headers.get(REQUEST_CALLBACK_HEADER),
        request.headers.get(REQUEST_RATE_HEADER),
    )
    headers = {ALLOWED_RATE_HEADER: "*"}
    if origin:
        headers[ALLOWED_ORIGIN_HEADER] = origin
    return Response(status_code=200, headers=headers)


@router.post("")
async def receive_updates(
    request: Request,
    validation: ValidationHandler = Depends(get_validation_handler),
    dispatcher: DispatchRouter = Depends(get_dispatch_router),
    auth: AuthenticationState = Depends(get_auth_state),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Receive a validation handshake or a notification delivery."""
    header_value = request.headers.get(EVENT_KIND_HEADER)
    kind = RequestKind.from_header(header_value)
    if kind is None:
        raise UnrecognizedRequestKindError(header_value)
    body = await _read_text(request)

    match kind:
        case RequestKind.SUBSCRIPTION_VALIDATION:
            answer = await validation.handle(body)
            return JSONResponse(answer.model_dump(by_alias=True))
        case RequestKind.NOTIFICATION:
            await _handle_notification(body, dispatcher, auth, settings)
            return Response(status_code=200)


async def _handle_notification(
    body: str,
    dispatcher: DispatchRouter,
    auth: AuthenticationState,
    settings: Settings,
) -> None:
    source_format = detect_format(body)
    logger.debug(
        "Notification in %s format", source_format.value,
        extra={"source_format": source_format.value},
    )
    if source_format is SourceFormat.CLOUD:
        await dispatcher.dispatch_cloud(decode_cloud_event(body))
        return

    events = decode_grid_events(body, settings.grid_batch_failure_mode)
    if settings.auth_wait_timeout_seconds > 0 and not auth.is_resolved:
        resolved = await auth.wait_until_resolved(settings.auth_wait_timeout_seconds)
        if not resolved:
            logger.warning("DevOps session still pending; routing as unauthenticated")
    await dispatcher.dispatch_batch(events)


async def _read_text(request: Request) -> str:
    raw = await request.body()
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedEventError("Body is not valid UTF-8") from exc
