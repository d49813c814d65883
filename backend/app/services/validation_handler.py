"""Validation Handler — answers the one-shot subscription validation handshake.

Invariants:
    - Exactly one broadcast attempt per handshake (the raw request body)
    - Broadcast failure is logged and never blocks the echo response
    - Empty batch raises ValidationPreconditionError; missing code raises MalformedEventError
"""

import logging

from app.core.boundary_protocols import BroadcastSink
from app.core.domain_types import GRID_UPDATE_CHANNEL, RequestKind
from app.core.errors import ErrorContext, SinkFailureError
from app.core.event_decoder import decode_validation_event
from app.schemas.events import ValidationResponse

logger = logging.getLogger(__name__)


class ValidationHandler:
    """Echoes the publisher's validation code back in a validationResponse envelope."""

    def __init__(self, sink: BroadcastSink):
        self._sink = sink

    async def handle(self, body: str) -> ValidationResponse:
        event, validation = decode_validation_event(body)
        try:
            await self._sink.broadcast(
                GRID_UPDATE_CHANNEL,
                event.id,
                event.event_type,
                event.subject,
                event.formatted_time,
                event.raw_payload,
            )
        except Exception as exc:
            err = SinkFailureError(
                str(exc),
                ErrorContext(
                    event_id=event.id, event_type=event.event_type,
                    request_kind=RequestKind.SUBSCRIPTION_VALIDATION.value,
                ),
            )
            logger.warning(
                err.message,
                extra={"error_code": err.code, "event_id": event.id},
            )
        logger.info(
            "Answered subscription validation",
            extra={"event_id": event.id, "event_type": event.event_type},
        )
        return ValidationResponse(validation_response=validation.validation_code)
