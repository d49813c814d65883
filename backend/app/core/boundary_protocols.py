"""Boundary Protocols — contracts between the routing core and its collaborators.

Invariants:
    - Services depend on these Protocols, never on the hub or the DevOps client
    - BroadcastSink implementations log their own failures and may still raise;
      callers treat any raise as a contained SinkFailureError
    - AuthenticationStatus is read-only from the caller's side

Design Decisions:
    - Protocol over ABC: structural subtyping, fakes in tests need no inheritance
"""

from typing import Protocol


class BroadcastSink(Protocol):
    """Pushes one normalized event to every connected real-time subscriber."""
    async def broadcast(
        self,
        channel: str,
        event_id: str,
        event_type: str,
        subject: str,
        formatted_time: str,
        raw_payload: str,
    ) -> None: ...


class AuthenticationStatus(Protocol):
    """Whether the outbound CI session has completed its handshake."""
    @property
    def is_authenticated(self) -> bool: ...


class BuildTrigger(Protocol):
    """Queues one build on the configured external CI definition."""
    async def trigger_build(self) -> None: ...
