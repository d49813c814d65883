"""Update Stream — SSE endpoint real-time subscribers connect to.

Invariants:
    - One hub subscription per open connection, removed when the client leaves
    - Each broadcast is emitted as an SSE "gridupdate" event with a JSON data line
    - Idle connections receive a comment keepalive every KEEPALIVE_SECONDS
"""

import asyncio
import json
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from app.infrastructure.subscriber_hub import SubscriberHub, get_hub

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/updates", tags=["updates"])

KEEPALIVE_SECONDS = 15.0

# ADR: SSE headers prevent proxy/browser buffering of streamed events.
_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


@router.get("/stream")
async def stream_updates(hub: SubscriberHub = Depends(get_hub)):
    """SSE stream of every event broadcast while the client is connected."""
    return StreamingResponse(
        event_stream(hub),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )


async def event_stream(
    hub: SubscriberHub, keepalive_seconds: float = KEEPALIVE_SECONDS,
) -> AsyncGenerator[str, None]:
    queue = hub.subscribe()
    try:
        yield ": connected\n\n"
        while True:
            try:
                message = await asyncio.wait_for(queue.get(), keepalive_seconds)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            yield _sse_event(message)
    except asyncio.CancelledError:
        logger.info("Subscriber stream cancelled")
        raise
    finally:
        hub.unsubscribe(queue)


def _sse_event(message: dict) -> str:
    """Format a hub message as a named SSE event."""
    data = {k: v for k, v in message.items() if k != "channel"}
    return f"event: {message['channel']}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"
