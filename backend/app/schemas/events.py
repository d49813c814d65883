"""Event Schemas — typed envelopes for both wire formats plus the normalized event.

Invariants:
    - GridEventEnvelope and CloudEventEnvelope require non-empty id and type
    - data is an opaque passthrough: never inspected except for the validation code
    - NormalizedEvent is frozen: built once per inbound event unit, never mutated
    - Unparseable occurrence times become None rather than failing the event

Design Decisions:
    - snake_case fields with wire-name aliases: one place knows the publisher's spelling
    - extra="ignore" on envelopes: only fields the gateway reads are declared;
      topic, dataVersion, source and extensions pass through untyped in raw_payload
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.domain_types import SourceFormat


def _coerce_event_time(value: Any) -> datetime | None:
    """Accept ISO-8601 strings (any fraction length, trailing Z) or datetimes."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


class GridEventEnvelope(BaseModel):
    """One element of a GridFormat array."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(min_length=1)
    event_type: str = Field(alias="eventType", min_length=1)
    subject: str = ""
    event_time: datetime | None = Field(None, alias="eventTime")
    data: Any = None

    @field_validator("event_time", mode="before")
    @classmethod
    def parse_event_time(cls, v: Any) -> datetime | None:
        return _coerce_event_time(v)

    @field_validator("subject", mode="before")
    @classmethod
    def null_subject_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class CloudEventEnvelope(BaseModel):
    """A single CloudFormat event (CloudEvents 1.0 structured mode)."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    specversion: str = Field(min_length=1)
    id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    subject: str = ""
    time: datetime | None = None
    data: Any = None

    @field_validator("time", mode="before")
    @classmethod
    def parse_time(cls, v: Any) -> datetime | None:
        return _coerce_event_time(v)

    @field_validator("subject", mode="before")
    @classmethod
    def null_subject_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class ValidationData(BaseModel):
    """Payload of a subscription validation event."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    validation_code: str = Field(alias="validationCode", min_length=1)


class ValidationResponse(BaseModel):
    """Handshake echo returned to the publisher."""
    model_config = ConfigDict(populate_by_name=True)

    validation_response: str = Field(alias="validationResponse")


class NormalizedEvent(BaseModel):
    """Canonical event shape, independent of the wire format it arrived in."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    event_type: str = Field(min_length=1)
    subject: str = ""
    time: datetime | None = None
    raw_payload: str
    source_format: SourceFormat

    @property
    def formatted_time(self) -> str:
        """Grid events render as a long time (3:04:05 PM); Cloud events as ISO-8601."""
        if self.time is None:
            return ""
        if self.source_format is SourceFormat.CLOUD:
            return self.time.isoformat()
        hour = self.time.hour % 12 or 12
        meridiem = "AM" if self.time.hour < 12 else "PM"
        return f"{hour}:{self.time:%M:%S} {meridiem}"
