"""Authentication State — readiness flag for the outbound CI session.

Invariants:
    - Starts unresolved and unauthenticated; resolves exactly once
    - Only the DevOps connect task writes it; everything else reads is_authenticated
    - Until resolved, is_authenticated is False (requests racing startup take the
      unauthenticated branch unless the caller chooses to wait_until_resolved)

Design Decisions:
    - Plain attribute + asyncio.Event on the single event loop: reads need no lock
"""

import asyncio
import logging

logger = logging.getLogger(__name__)


class AuthenticationState:
    """Process-wide flag set once by the background DevOps connect task."""

    def __init__(self) -> None:
        self._authenticated = False
        self._resolved = asyncio.Event()
        self.failure_reason: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    @property
    def is_resolved(self) -> bool:
        return self._resolved.is_set()

    def mark_authenticated(self) -> None:
        if self._resolved.is_set():
            logger.warning("Authentication state already resolved; ignoring update")
            return
        self._authenticated = True
        self._resolved.set()
        logger.info("DevOps session authenticated")

    def mark_failed(self, reason: str) -> None:
        if self._resolved.is_set():
            logger.warning("Authentication state already resolved; ignoring update")
            return
        self.failure_reason = reason
        self._resolved.set()
        logger.warning("DevOps session unavailable: %s", reason)

    async def wait_until_resolved(self, timeout: float) -> bool:
        """Wait up to timeout seconds; returns whether the state resolved."""
        if self._resolved.is_set():
            return True
        try:
            await asyncio.wait_for(self._resolved.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def status(self) -> str:
        if not self.is_resolved:
            return "pending"
        return "authenticated" if self._authenticated else "unavailable"


# Singleton (replaced on startup)
auth_state = AuthenticationState()


def reset_auth_state() -> AuthenticationState:
    global auth_state
    auth_state = AuthenticationState()
    return auth_state


def get_auth_state() -> AuthenticationState:
    """FastAPI dependency for the process-wide authentication state."""
    return auth_state
