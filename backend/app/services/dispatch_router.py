"""Dispatch Router — applies per-event-type policy and broadcasts each decoded event.

Invariants:
    - One broadcast attempt per event, in decode order; no reordering, dedup, or rate limiting
    - A failed broadcast never skips later events in the same batch
    - The build trigger, when injected, is scheduled once per GridFormat batch
      as a tracked background task; the HTTP response never waits on it and
      its failure never affects dispatch
    - AuthenticationStatus is only read, never mutated
    - BlobCreated events arriving while the CI session is authenticated are
      broadcast with ELEVATED_EVENT_TYPE instead of their own type

Design Decisions:
    - Build trigger modeled as an optional BuildTrigger: the router runs without
      any live CI dependency when it is None
    - CloudFormat events bypass the elevation policy and the trigger
      (dispatch_cloud); the policy applies to GridFormat batches only
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable

from app.core.boundary_protocols import (
    AuthenticationStatus, BroadcastSink, BuildTrigger,
)
from app.core.domain_types import (
    BLOB_CREATED_EVENT_TYPE, ELEVATED_EVENT_TYPE, GRID_UPDATE_CHANNEL,
)
from app.core.errors import (
    ErrorContext, SinkFailureError, TriggerFailureError,
)
from app.schemas.events import NormalizedEvent

logger = logging.getLogger(__name__)

_pending_triggers: set[asyncio.Task] = set()


@dataclass
class DispatchSummary:
    """Outcome counts for one dispatched batch."""
    attempted: int = 0
    delivered: int = 0
    failed: int = 0
    trigger_invoked: bool = False


class DispatchRouter:
    """Routes NormalizedEvents to the broadcast sink."""

    def __init__(
        self,
        sink: BroadcastSink,
        auth: AuthenticationStatus,
        trigger: BuildTrigger | None = None,
    ):
        self._sink = sink
        self._auth = auth
        self._trigger = trigger

    def route_type(self, event: NormalizedEvent) -> str:
        """Type value subscribers see for this event."""
        if (event.event_type == BLOB_CREATED_EVENT_TYPE
                and self._auth.is_authenticated):
            return ELEVATED_EVENT_TYPE
        return event.event_type

    async def dispatch_batch(
        self, events: Iterable[NormalizedEvent],
    ) -> DispatchSummary:
        """Schedule a build (if configured), then broadcast every event in order."""
        summary = DispatchSummary()
        summary.trigger_invoked = self._schedule_trigger()
        for event in events:
            summary.attempted += 1
            if await self._broadcast(event, self.route_type(event)):
                summary.delivered += 1
            else:
                summary.failed += 1
        logger.info(
            "Dispatched grid batch: %d/%d delivered",
            summary.delivered, summary.attempted,
        )
        return summary

    async def dispatch_cloud(self, event: NormalizedEvent) -> bool:
        """Broadcast a single CloudFormat event with its original type."""
        return await self._broadcast(event, event.event_type)

    async def dispatch(self, event: NormalizedEvent) -> bool:
        """Broadcast one event with the routing policy applied."""
        return await self._broadcast(event, self.route_type(event))

    async def _broadcast(self, event: NormalizedEvent, event_type: str) -> bool:
        try:
            await self._sink.broadcast(
                GRID_UPDATE_CHANNEL,
                event.id,
                event_type,
                event.subject,
                event.formatted_time,
                event.raw_payload,
            )
        except Exception as exc:
            err = SinkFailureError(
                str(exc),
                ErrorContext(event_id=event.id, event_type=event.event_type),
            )
            logger.warning(
                err.message,
                extra={"error_code": err.code, "event_id": event.id},
            )
            return False
        logger.debug(
            "Broadcast %s as %s", event.id, event_type,
            extra={"event_id": event.id, "event_type": event_type},
        )
        return True

    def _schedule_trigger(self) -> bool:
        if self._trigger is None:
            return False
        task = asyncio.create_task(
            _run_trigger(self._trigger), name="build-trigger",
        )
        _pending_triggers.add(task)
        task.add_done_callback(_pending_triggers.discard)
        return True


async def _run_trigger(trigger: BuildTrigger) -> None:
    try:
        await trigger.trigger_build()
    except TriggerFailureError as exc:
        logger.warning(exc.message, extra={"error_code": exc.code})
    except Exception as exc:
        err = TriggerFailureError(str(exc), "queue")
        logger.error(err.message, extra={"error_code": err.code}, exc_info=True)


async def drain_pending_triggers(timeout: float | None = None) -> None:
    """Wait for scheduled build triggers; cancel any still running after timeout."""
    if not _pending_triggers:
        return
    _, still_running = await asyncio.wait(set(_pending_triggers), timeout=timeout)
    for task in still_running:
        task.cancel()
    if still_running:
        logger.warning("Cancelled %d build trigger(s) at shutdown", len(still_running))
        await asyncio.gather(*still_running, return_exceptions=True)
