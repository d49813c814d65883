"""Event Grid Gateway API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map GatewayError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Subscriber hub and authentication state are created in the lifespan;
      the DevOps connect runs as a detached task so startup never waits on it

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Without a configured PAT the authentication state resolves to "unavailable"
      at startup
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.error_handlers import register_error_handlers
from app.api.middleware import RequestLoggingMiddleware
from app.api.routes import health, update_stream, updates
from app.config import Settings, get_settings
from app.infrastructure.auth_state import AuthenticationState, reset_auth_state
from app.infrastructure.devops_client import DevOpsSession, init_devops
from app.infrastructure.observability import setup_logging
from app.infrastructure.subscriber_hub import init_hub
from app.services.dispatch_router import drain_pending_triggers

logger = logging.getLogger(__name__)


def _create_devops_session(
    settings: Settings, state: AuthenticationState,
) -> DevOpsSession | None:
    if not settings.devops_enabled:
        state.mark_failed("DevOps PAT or collection URL not configured")
        return None
    return DevOpsSession(
        collection_url=settings.devops_collection_url,
        pat=settings.devops_pat,
        project=settings.devops_project,
        definition_id=settings.devops_build_definition_id,
        source_branch=settings.devops_source_branch,
        auth_state=state,
        timeout_seconds=settings.devops_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    init_hub(settings.subscriber_queue_size)
    state = reset_auth_state()
    session = _create_devops_session(settings, state)
    init_devops(session)
    connect_task = None
    if session is not None:
        connect_task = asyncio.create_task(session.connect(), name="devops-connect")
    logger.info("Event Grid Gateway started")
    yield
    logger.info("Event Grid Gateway shutting down")
    if connect_task is not None and not connect_task.done():
        connect_task.cancel()
        with suppress(asyncio.CancelledError):
            await connect_task
    await drain_pending_triggers(timeout=settings.devops_timeout_seconds)
    if session is not None:
        await session.close()
    init_devops(None)


app = FastAPI(
    title="Event Grid Gateway API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# Routes — explicit registration
app.include_router(health.router)
app.include_router(updates.router)
app.include_router(update_stream.router)

register_error_handlers(app)
