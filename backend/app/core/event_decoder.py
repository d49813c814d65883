"""Event Decoder — classifies raw request bodies and decodes them into NormalizedEvents.

Invariants:
    - detect_format never raises; anything that is not a CloudFormat object is GRID
    - Every decoded event has non-empty id and event_type (enforced by the envelopes)
    - Decoding is pure: the same body always yields structurally equal events
    - Malformed input raises MalformedEventError and produces no events

Design Decisions:
    - Format detection is a heuristic, not a schema check: CloudFormat bodies are
      assumed to be exactly one JSON object carrying a non-empty "specversion",
      GridFormat bodies exactly one JSON array of objects
    - Per-element failure policy is a parameter (BatchFailureMode), ABORT by default
"""

import json
import logging
from typing import Any

from pydantic import ValidationError

from app.core.domain_types import BatchFailureMode, SourceFormat
from app.core.errors import (
    ErrorContext, MalformedEventError, ValidationPreconditionError,
)
from app.schemas.events import (
    CloudEventEnvelope, GridEventEnvelope, NormalizedEvent, ValidationData,
)

logger = logging.getLogger(__name__)


def detect_format(body: str) -> SourceFormat:
    """Return CLOUD for a single object with a non-empty specversion, else GRID."""
    try:
        payload = json.loads(body)
    except ValueError:
        return SourceFormat.GRID
    if isinstance(payload, dict):
        version = payload.get("specversion")
        if isinstance(version, str) and version:
            return SourceFormat.CLOUD
    return SourceFormat.GRID


def decode_grid_events(
    body: str, failure_mode: BatchFailureMode = BatchFailureMode.ABORT,
) -> list[NormalizedEvent]:
    """Decode a GridFormat array, one NormalizedEvent per element, in order."""
    elements = _load_array(body)
    events: list[NormalizedEvent] = []
    for index, element in enumerate(elements):
        try:
            events.append(_decode_grid_element(element, index))
        except MalformedEventError as exc:
            if failure_mode is BatchFailureMode.ABORT:
                raise
            logger.warning(
                "Skipping malformed grid event %d: %s", index, exc.message,
                extra={"error_code": exc.code},
            )
    return events


def decode_cloud_event(body: str) -> NormalizedEvent:
    """Decode a single CloudFormat object; the whole object is the raw payload."""
    payload = _load_json(body)
    if not isinstance(payload, dict):
        raise MalformedEventError("CloudFormat body must be a single JSON object")
    try:
        envelope = CloudEventEnvelope.model_validate(payload)
    except ValidationError as exc:
        raise MalformedEventError(
            f"Invalid cloud event: {_describe(exc)}",
            ErrorContext(event_id=_peek_id(payload)),
        ) from exc
    return NormalizedEvent(
        id=envelope.id,
        event_type=envelope.type,
        subject=envelope.subject,
        time=envelope.time,
        raw_payload=_serialize(payload),
        source_format=SourceFormat.CLOUD,
    )


def decode_validation_event(body: str) -> tuple[NormalizedEvent, ValidationData]:
    """Decode a subscription validation handshake (GridFormat, first element).

    The raw payload of the returned event is the entire request body.
    """
    elements = _load_array(body)
    if not elements:
        raise ValidationPreconditionError()
    envelope = _parse_grid_envelope(elements[0], 0)
    event = _normalize_grid(envelope, raw_payload=body)
    if not isinstance(envelope.data, dict):
        raise MalformedEventError(
            "Validation event carries no data object",
            ErrorContext(event_id=event.id, event_type=event.event_type),
        )
    try:
        validation = ValidationData.model_validate(envelope.data)
    except ValidationError as exc:
        raise MalformedEventError(
            f"Validation event has no validation code: {_describe(exc)}",
            ErrorContext(event_id=event.id, event_type=event.event_type),
        ) from exc
    return event, validation


# ─── Helpers ─────────────────────────────────────────────────────

def _load_json(body: str) -> Any:
    try:
        return json.loads(body)
    except ValueError as exc:
        raise MalformedEventError(f"Body is not valid JSON: {exc}") from exc


def _load_array(body: str) -> list:
    payload = _load_json(body)
    if not isinstance(payload, list):
        raise MalformedEventError("GridFormat body must be a JSON array of events")
    return payload


def _decode_grid_element(element: Any, index: int) -> NormalizedEvent:
    envelope = _parse_grid_envelope(element, index)
    return _normalize_grid(envelope, raw_payload=_serialize(element))


def _parse_grid_envelope(element: Any, index: int) -> GridEventEnvelope:
    if not isinstance(element, dict):
        raise MalformedEventError(
            f"Grid event {index} is not a JSON object",
            ErrorContext(element_index=index),
        )
    try:
        envelope = GridEventEnvelope.model_validate(element)
    except ValidationError as exc:
        raise MalformedEventError(
            f"Invalid grid event {index}: {_describe(exc)}",
            ErrorContext(event_id=_peek_id(element), element_index=index),
        ) from exc
    return envelope


def _normalize_grid(envelope: GridEventEnvelope, raw_payload: str) -> NormalizedEvent:
    return NormalizedEvent(
        id=envelope.id,
        event_type=envelope.event_type,
        subject=envelope.subject,
        time=envelope.event_time,
        raw_payload=raw_payload,
        source_format=SourceFormat.GRID,
    )


def _serialize(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False)


def _peek_id(payload: dict) -> str | None:
    value = payload.get("id")
    return value if isinstance(value, str) else None


def _describe(exc: ValidationError) -> str:
    """Compact field-level summary, e.g. 'eventType: Field required'."""
    return "; ".join(
        f"{'.'.join(str(loc) for loc in e['loc'])}: {e['msg']}"
        for e in exc.errors()
    )
