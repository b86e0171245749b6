"""Configuration management using Pydantic Settings."""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment presets."""

    DEV = "dev"
    PROD = "prod"
    TEST = "test"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CITEGRAPH_",
        case_sensitive=False,
    )

    environment: Environment = Environment.DEV

    # Literature server (source of graph data and background jobs)
    api_base_url: str = "http://localhost:3000"
    api_token: str | None = None
    request_timeout: float = 30.0
    request_retries: int = Field(
        default=2,
        description="Connection-level retries for idempotent requests"
    )
    project_id: str | None = Field(
        default=None,
        description="Project served by the HTTP surface"
    )

    # Job polling
    poll_interval: float = Field(
        default=2.0,
        description="Seconds between job status polls"
    )
    stall_threshold: float = Field(
        default=60.0,
        description="Seconds without progress before a running job is hinted as stalled"
    )
    reload_settle_delay: float = Field(
        default=1.0,
        description="Delay before reloading the graph after a completed job"
    )

    # Banner lifetimes (seconds)
    info_message_ttl: float = 5.0
    warning_message_ttl: float = 7.0
    error_message_ttl: float = 10.0

    # Graph derivation
    semantic_edge_threshold: float = Field(
        default=0.7,
        description="Minimum similarity for semantic neighbor edges"
    )
    pipeline_cache_size: int = Field(
        default=32,
        description="Memoized derived graphs kept per process"
    )
    default_theme: str = Field(
        default="dark",
        description="Initial palette: 'dark' (vibrant) or 'light' (pastel)"
    )

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False


def get_dev_settings() -> Settings:
    """Get development environment settings."""
    return Settings(
        environment=Environment.DEV,
        api_base_url="http://localhost:3000",
        api_debug=True,
    )


def get_test_settings() -> Settings:
    """Get test environment settings."""
    return Settings(
        environment=Environment.TEST,
        api_base_url="http://testserver",
        poll_interval=0.01,
        stall_threshold=60.0,
        reload_settle_delay=0.0,
        info_message_ttl=0.05,
        warning_message_ttl=0.05,
        error_message_ttl=0.05,
        project_id="project-test",
    )


def get_prod_settings() -> Settings:
    """Get production environment settings.

    Longer timeouts and more retries for a remote literature server.
    """
    return Settings(
        environment=Environment.PROD,
        request_timeout=60.0,
        request_retries=3,
        api_debug=False,
    )


PRESETS = {
    Environment.DEV: get_dev_settings,
    Environment.PROD: get_prod_settings,
    Environment.TEST: get_test_settings,
}


def get_settings(environment: Environment | str) -> Settings:
    """Get the preset settings for an environment name."""
    return PRESETS[Environment(environment)]()


# Global settings instance
settings = Settings()
