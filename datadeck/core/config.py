"""
Application settings using Pydantic for validation and type safety.
Security: All sensitive values loaded from environment variables.
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


def _split_models(value: str) -> list[str]:
    return [m.strip() for m in value.split(",") if m.strip()]


class Settings(BaseSettings):
    """Application configuration with validation and security best practices."""

    # Application
    app_name: str = Field(default="DataDeck", description="Application name")
    debug: bool = Field(default=False, description="Debug mode flag")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=7010, ge=1, le=65535, description="Server port")

    # Paths (relative to workspace root)
    data_dir: Path = Field(default=Path("data"), description="Data directory")

    @property
    def workspaces_dir(self) -> Path:
        """Get presentation session workspaces directory path."""
        return self.data_dir / "workspaces"

    @property
    def logs_dir(self) -> Path:
        """Get tool-call audit log directory path."""
        return self.data_dir / "logs"

    # Analytics database (PostgreSQL)
    analytics_database_url: Optional[str] = Field(
        default=None,
        description="PostgreSQL DSN for the analytics database (sensitive)"
    )
    analytics_pool_min_size: int = Field(default=1, ge=0, le=50, description="Minimum pool connections")
    analytics_pool_max_size: int = Field(default=10, ge=1, le=100, description="Maximum pool connections")
    analytics_ssl: bool = Field(default=False, description="Require SSL for analytics connections")
    query_max_rows: int = Field(
        default=20,
        ge=1,
        le=500,
        description="Hard cap on rows returned to the model by the analytics query tool"
    )

    # CRM (Directus-style REST API)
    crm_url: str = Field(
        default="https://cms.example.org",
        description="Base URL of the CRM REST API"
    )
    crm_access_token: Optional[str] = Field(
        default=None,
        description="CRM static access token (sensitive)"
    )
    crm_timeout_seconds: int = Field(default=30, ge=1, le=300, description="CRM request timeout")
    crm_search_limit: int = Field(default=10, ge=1, le=100, description="Max organizations per search")
    crm_contacts_limit: int = Field(default=10, ge=1, le=100, description="Max contacts per lookup")

    # Azure OpenAI (SDK-managed runner via Agent Framework)
    azure_openai_api_key: Optional[str] = Field(
        default=None,
        description="Azure OpenAI API key (sensitive)"
    )
    azure_openai_endpoint: Optional[str] = Field(
        default=None,
        description="Azure OpenAI endpoint URL"
    )
    azure_openai_deployment: str = Field(
        default="gpt-4.1",
        description="Default Azure OpenAI deployment for the SDK-managed runner"
    )
    azure_openai_api_version: str = Field(
        default="2024-10-21",
        description="Azure OpenAI API version"
    )

    # OpenAI-compatible endpoint (self-managed runner)
    openai_base_url: Optional[str] = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai/",
        description="Base URL of an OpenAI-compatible chat completions endpoint"
    )
    openai_api_key: Optional[str] = Field(
        default=None,
        description="API key for the OpenAI-compatible endpoint (sensitive)"
    )

    # Model catalog
    sdk_models: str = Field(
        default="gpt-4.1,gpt-4.1-mini",
        description="Comma-separated deployments offered through the SDK-managed runner"
    )
    direct_models: str = Field(
        default="gemini-2.5-flash,gemini-2.5-pro",
        description="Comma-separated models offered through the self-managed runner"
    )

    # Agent limits
    generate_max_turns: int = Field(default=50, ge=1, le=200, description="Turn budget for generation")
    tweak_max_turns: int = Field(default=15, ge=1, le=100, description="Turn budget for whole-document tweaks")
    tweak_fragments_max_turns: int = Field(
        default=10, ge=1, le=100, description="Turn budget for selected-slide tweaks"
    )
    agent_history_limit: int = Field(
        default=15, ge=3, le=200, description="History entries kept before pruning"
    )
    run_timeout_seconds: int = Field(
        default=300, ge=10, le=3600, description="Wall-clock budget for one agent run"
    )

    # Sessions
    session_retention_hours: int = Field(
        default=24, ge=1, le=24 * 30, description="Age after which session workspaces are purged"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    # Tracing Configuration (Optional - disabled by default)
    tracing_enabled: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing"
    )
    tracing_service_name: str = Field(
        default="datadeck",
        description="Service name for tracing"
    )
    applicationinsights_connection_string: Optional[str] = Field(
        default=None,
        description="Azure Application Insights connection string for cloud tracing"
    )

    @property
    def has_azure_openai(self) -> bool:
        """Check if Azure OpenAI is fully configured."""
        return bool(
            self.azure_openai_api_key
            and self.azure_openai_endpoint
            and self.azure_openai_deployment
        )

    @property
    def has_openai_compatible(self) -> bool:
        """Check if the OpenAI-compatible endpoint is configured."""
        return bool(self.openai_base_url and self.openai_api_key)

    @property
    def has_analytics_database(self) -> bool:
        return bool(self.analytics_database_url)

    @property
    def sdk_model_list(self) -> list[str]:
        return _split_models(self.sdk_models)

    @property
    def direct_model_list(self) -> list[str]:
        return _split_models(self.direct_models)

    @property
    def default_provider(self) -> str:
        """Get the runner used when a request does not pick one."""
        if self.has_openai_compatible:
            return "direct"
        if self.has_azure_openai:
            return "sdk"
        return "none"

    def default_model(self, provider: str) -> str:
        """First configured model for a provider."""
        if provider == "sdk":
            models = self.sdk_model_list
            return models[0] if models else self.azure_openai_deployment
        models = self.direct_model_list
        return models[0] if models else "gemini-2.5-flash"

    @field_validator("data_dir")
    @classmethod
    def validate_data_dir(cls, v: Path) -> Path:
        """Ensure data directory path is valid."""
        return Path(v)

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        for dir_path in [
            self.data_dir,
            self.workspaces_dir,
            self.logs_dir,
        ]:
            dir_path.mkdir(parents=True, exist_ok=True)

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_prefix = ""
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Using lru_cache ensures settings are loaded once and reused.
    """
    return Settings()
