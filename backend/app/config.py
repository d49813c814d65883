"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - An empty DEVOPS_PAT or DEVOPS_COLLECTION_URL disables the DevOps session;
      the gateway still serves, always unauthenticated

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

from app.core.domain_types import BatchFailureMode


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Azure DevOps (build trigger collaborator)
    devops_collection_url: str = ""
    devops_pat: str = ""
    devops_project: str = ""
    devops_build_definition_id: int = 0
    devops_source_branch: str = "refs/heads/main"
    devops_timeout_seconds: float = 30.0
    ci_trigger_enabled: bool = True

    @field_validator("devops_collection_url")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        return v if not v or v.endswith("/") else v + "/"

    # Routing
    grid_batch_failure_mode: BatchFailureMode = BatchFailureMode.ABORT
    # 0 = never wait; requests racing startup see "not authenticated"
    auth_wait_timeout_seconds: float = 0.0

    # Subscribers
    subscriber_queue_size: int = 100

    # API
    cors_origins: list[str] = ["*"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def devops_enabled(self) -> bool:
        return bool(self.devops_pat and self.devops_collection_url)

    @property
    def build_trigger_configured(self) -> bool:
        return (
            self.ci_trigger_enabled
            and bool(self.devops_project)
            and self.devops_build_definition_id > 0
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
