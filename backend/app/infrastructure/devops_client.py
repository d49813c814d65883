"""DevOps Session — authenticated Azure DevOps REST session and build trigger.

Invariants:
    - connect() resolves AuthenticationState exactly once (authenticated or failed)
      and never raises; it runs as a detached task at startup
    - trigger_build() queues one build of the configured definition on the fixed
      source branch; every failure is mapped to TriggerFailureError
    - No retries: a failed trigger is reported once and dropped

Design Decisions:
    - httpx.AsyncClient against the DevOps REST API; transport injectable for tests
    - Basic auth with an empty user name and the PAT as password (DevOps PAT scheme)
"""

import logging
from urllib.parse import quote

import httpx

from app.core.errors import TriggerFailureError
from app.infrastructure.auth_state import AuthenticationState

logger = logging.getLogger(__name__)

API_VERSION = "7.1"


class DevOpsSession:
    """Wraps httpx.AsyncClient with PAT auth, connection handshake, and build queueing."""

    def __init__(
        self,
        collection_url: str,
        pat: str,
        project: str,
        definition_id: int,
        source_branch: str,
        auth_state: AuthenticationState,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.project = project
        self.definition_id = definition_id
        self.source_branch = source_branch
        self.auth_state = auth_state
        self.client = httpx.AsyncClient(
            base_url=collection_url,
            auth=httpx.BasicAuth("", pat),
            timeout=timeout_seconds,
            params={"api-version": API_VERSION},
            transport=transport,
        )

    async def connect(self) -> None:
        """Verify the PAT against the collection and resolve the auth state."""
        try:
            response = await self.client.get("_apis/connectionData")
            response.raise_for_status()
            data = response.json()
            user = (data.get("authenticatedUser") if isinstance(data, dict) else None) or {}
        except httpx.HTTPStatusError as e:
            self.auth_state.mark_failed(f"HTTP {e.response.status_code}")
            return
        except (httpx.HTTPError, ValueError) as e:
            self.auth_state.mark_failed(f"{type(e).__name__}: {e}")
            return
        if not user.get("id"):
            self.auth_state.mark_failed("connection data has no authenticated user")
            return
        logger.info(
            "Connected to DevOps as %s", user.get("providerDisplayName", user["id"]),
        )
        self.auth_state.mark_authenticated()

    async def trigger_build(self) -> None:
        """Queue a build of the configured definition on the configured branch."""
        if not self.auth_state.is_authenticated:
            raise TriggerFailureError("session is not authenticated", "queue")
        project = quote(self.project, safe="")
        definition = await self._request(
            "GET",
            f"{project}/_apis/build/definitions/{self.definition_id}",
            operation="definition lookup",
        )
        build = await self._request(
            "POST",
            f"{project}/_apis/build/builds",
            operation="queue",
            json={
                "definition": {"id": definition.get("id", self.definition_id)},
                "sourceBranch": self.source_branch,
            },
        )
        logger.info(
            "Queued build %s of %s on %s",
            build.get("id"), definition.get("name", self.definition_id),
            self.source_branch,
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def _request(self, method: str, url: str, operation: str, **kwargs) -> dict:
        try:
            response = await self.client.request(method, url, **kwargs)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise TriggerFailureError(
                f"HTTP {e.response.status_code}", operation,
            ) from e
        except httpx.HTTPError as e:
            raise TriggerFailureError(str(e) or type(e).__name__, operation) from e
        except ValueError as e:
            raise TriggerFailureError("response is not JSON", operation) from e
        if not isinstance(data, dict):
            raise TriggerFailureError("response is not a JSON object", operation)
        return data


# Singleton (initialized on startup when a PAT is configured)
devops_session: DevOpsSession | None = None


def init_devops(session: DevOpsSession | None) -> None:
    global devops_session
    devops_session = session


def get_devops_session() -> DevOpsSession | None:
    """FastAPI dependency; None when no PAT is configured."""
    return devops_session
