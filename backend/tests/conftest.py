"""Root conftest — shared test configuration and collaborator fakes.

Invariants:
    - Tests never talk to a real DevOps collection (PAT forced empty)
    - RecordingSink records every broadcast attempt, including ones it fails
"""

import asyncio
import os
from dataclasses import dataclass

import pytest

os.environ["DEVOPS_PAT"] = ""
os.environ.setdefault("LOG_FORMAT", "text")

from app.infrastructure.auth_state import AuthenticationState  # noqa: E402


@dataclass(frozen=True)
class BroadcastCall:
    channel: str
    event_id: str
    event_type: str
    subject: str
    formatted_time: str
    raw_payload: str


class RecordingSink:
    """BroadcastSink fake; raises for event ids listed in fail_on."""

    def __init__(self, fail_on: set[str] | None = None):
        self.calls: list[BroadcastCall] = []
        self.fail_on = fail_on or set()

    async def broadcast(
        self, channel, event_id, event_type, subject, formatted_time, raw_payload,
    ) -> None:
        self.calls.append(BroadcastCall(
            channel, event_id, event_type, subject, formatted_time, raw_payload,
        ))
        if event_id in self.fail_on:
            raise RuntimeError("subscriber connection reset")


class RecordingTrigger:
    """BuildTrigger fake counting invocations; optionally fails."""

    def __init__(self, error: Exception | None = None):
        self.calls = 0
        self.error = error

    async def trigger_build(self) -> None:
        self.calls += 1
        if self.error is not None:
            raise self.error


class BlockingTrigger:
    """BuildTrigger fake that stays in flight until released."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.finished = False

    async def trigger_build(self) -> None:
        self.started.set()
        await self.release.wait()
        self.finished = True


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_sink():
    return RecordingSink


@pytest.fixture
def trigger():
    return RecordingTrigger()


@pytest.fixture
def make_trigger():
    return RecordingTrigger


@pytest.fixture
def blocking_trigger():
    return BlockingTrigger()


@pytest.fixture
def authenticated():
    state = AuthenticationState()
    state.mark_authenticated()
    return state


@pytest.fixture
def unauthenticated():
    state = AuthenticationState()
    state.mark_failed("no PAT")
    return state


@pytest.fixture
def pending_auth():
    return AuthenticationState()
