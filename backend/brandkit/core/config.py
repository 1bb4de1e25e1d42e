"""Application configuration loaded from environment variables.

All configuration is via environment variables (or a local .env file).
No hardcoded URLs, ports, or credentials.
"""

from functools import lru_cache

from pydantic import Field, PostgresDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Brand Kit Studio")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    port: int = Field(default=8000, description="Port to bind to")
    host: str = Field(default="0.0.0.0", description="Host to bind to")
    frontend_url: str | None = Field(
        default=None, description="Allowed CORS origin (all origins when unset)"
    )

    # Auth - session validation happens upstream, we only read the owner id
    auth_required: bool = Field(
        default=True, description="Require the X-User-Id header on kit routes"
    )
    dev_owner_id: str = Field(
        default="dev-user", description="Owner id used when auth is disabled"
    )

    # Database
    database_url: PostgresDsn = Field(
        ...,
        description="PostgreSQL connection string",
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size")
    db_max_overflow: int = Field(default=10, description="Max overflow connections")
    db_pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    db_slow_query_threshold_ms: int = Field(
        default=100, description="Threshold for slow query warnings (ms)"
    )
    db_connect_timeout: int = Field(
        default=60, description="Connection timeout in seconds"
    )
    db_command_timeout: int = Field(
        default=60, description="Command timeout in seconds"
    )

    # Brand kit documents
    kit_write_version_check: bool = Field(
        default=False,
        description=(
            "Reject a document write when meta.version moved since the read "
            "(compare-and-swap). Off by default: last writer wins."
        ),
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format: json or text")

    # Claude/Anthropic LLM
    anthropic_api_key: str | None = Field(
        default=None,
        description="Anthropic API key for Claude models",
    )
    claude_model: str = Field(
        default="claude-3-5-haiku-20241022",
        description="Claude model used for all brand kit generation",
    )
    claude_timeout: float = Field(
        default=90.0, description="Claude API request timeout in seconds"
    )
    claude_max_retries: int = Field(
        default=1,
        description="Attempts per Claude request (1 = transient failures are not retried)",
    )
    claude_retry_delay: float = Field(
        default=1.0, description="Base delay between retries in seconds"
    )
    claude_max_tokens: int = Field(
        default=2048, description="Maximum tokens in Claude response"
    )
    claude_temperature: float = Field(
        default=0.7, description="Sampling temperature for copy generation"
    )
    # Circuit breaker settings for Claude
    claude_circuit_failure_threshold: int = Field(
        default=5, description="Failures before circuit opens"
    )
    claude_circuit_recovery_timeout: float = Field(
        default=60.0, description="Seconds before attempting recovery"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
