"""API test fixtures — FastAPI app with collaborators overridden.

Invariants:
    - Every test gets a fresh RecordingSink, auth state, and optional trigger
    - Lifespan does not run (ASGITransport); no DevOps session is created
"""

from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.dependencies import get_broadcast_sink, get_build_trigger
from app.config import get_settings
from app.infrastructure.auth_state import get_auth_state
from app.main import app


@pytest.fixture
def gateway(sink, unauthenticated):
    """Mutable wiring the client fixture installs as dependency overrides."""
    return SimpleNamespace(
        sink=sink,
        auth=unauthenticated,
        trigger=None,
        settings=get_settings().model_copy(),
    )


@pytest.fixture
async def client(gateway):
    app.dependency_overrides[get_broadcast_sink] = lambda: gateway.sink
    app.dependency_overrides[get_auth_state] = lambda: gateway.auth
    app.dependency_overrides[get_build_trigger] = lambda: gateway.trigger
    app.dependency_overrides[get_settings] = lambda: gateway.settings

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
