"""Subscriber Hub — in-process BroadcastSink fanning events out to live subscribers.

Invariants:
    - Every broadcast is offered to each subscriber connected at that moment
    - broadcast never blocks: a subscriber whose queue is full misses that event
      (logged), others are unaffected
    - Offline subscribers receive nothing; there is no replay buffer

Design Decisions:
    - One bounded asyncio.Queue per subscriber; the SSE route drains it
"""

import asyncio
import logging
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 100


class SubscriberHub:
    """BroadcastSink implementation backed by per-subscriber queues."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self.subscribers: list[asyncio.Queue[dict[str, Any]]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self.subscribers)

    async def broadcast(
        self,
        channel: str,
        event_id: str,
        event_type: str,
        subject: str,
        formatted_time: str,
        raw_payload: str,
    ) -> None:
        """Offer one message to every subscriber."""
        message = {
            "channel": channel,
            "id": event_id,
            "eventType": event_type,
            "subject": subject,
            "eventTime": formatted_time,
            "payload": raw_payload,
        }
        dropped = 0
        for queue in list(self.subscribers):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                dropped += 1
        if dropped:
            logger.warning(
                "Dropped event %s for %d slow subscriber(s)", event_id, dropped,
                extra={"event_id": event_id, "subscriber_count": self.subscriber_count},
            )

    def subscribe(self) -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self.queue_size)
        self.subscribers.append(queue)
        logger.info(
            "Subscriber connected",
            extra={"subscriber_count": self.subscriber_count},
        )
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        if queue in self.subscribers:
            self.subscribers.remove(queue)
            logger.info(
                "Subscriber disconnected",
                extra={"subscriber_count": self.subscriber_count},
            )


# Singleton (initialized on startup)
_hub: SubscriberHub | None = None


def init_hub(queue_size: int = DEFAULT_QUEUE_SIZE) -> SubscriberHub:
    global _hub
    _hub = SubscriberHub(queue_size)
    return _hub


def get_hub() -> SubscriberHub:
    """FastAPI dependency for the hub, creating it if startup has not run."""
    global _hub
    if _hub is None:
        _hub = SubscriberHub()
    return _hub
