"""Domain Types — closed enums and reserved constants for event routing.

Invariants:
    - Every header value used for routing is decoded once into RequestKind
    - Unknown header values never become a RequestKind (from_header returns None)
    - SourceFormat is set by the decoder only

Design Decisions:
    - str Enums: serialize to JSON and log extras without custom encoders
"""

from enum import Enum


# ─── Reserved Values ─────────────────────────────────────────────

GRID_UPDATE_CHANNEL = "gridupdate"
BLOB_CREATED_EVENT_TYPE = "Microsoft.Storage.BlobCreated"
ELEVATED_EVENT_TYPE = "True"

EVENT_KIND_HEADER = "aeg-event-type"


# ─── Enums ───────────────────────────────────────────────────────

class SourceFormat(str, Enum):
    """Wire format an event arrived in."""
    GRID = "grid"
    CLOUD = "cloud"


class RequestKind(str, Enum):
    """Purpose of a delivery request, from the publisher identity header."""
    SUBSCRIPTION_VALIDATION = "SubscriptionValidation"
    NOTIFICATION = "Notification"

    @classmethod
    def from_header(cls, value: str | None) -> "RequestKind | None":
        """Exact, case-sensitive match against the publisher's tokens."""
        for kind in cls:
            if kind.value == value:
                return kind
        return None


class BatchFailureMode(str, Enum):
    """What a malformed element does to the rest of a GridFormat batch."""
    ABORT = "abort"
    SKIP = "skip"
