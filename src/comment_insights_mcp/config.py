"""Server configuration via environment variables."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, field_validator

VALID_THINKING_LEVELS = {"minimal", "low", "medium", "high"}

MODEL_PRESETS: dict[str, dict[str, str]] = {
    "quality": {
        "default_model": "gemini-3.1-pro-preview",
        "label": "Best classification quality: 3.1 Pro (lowest rate limits)",
    },
    "budget": {
        "default_model": "gemini-3-flash-preview",
        "label": "Cost-optimized: 3 Flash for every comment (highest rate limits)",
    },
}

_TRUTHY = ("1", "true", "yes")


def _env_flag(name: str, default: bool) -> bool:
    """Read a boolean env var; unset or blank falls back to *default*."""
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in _TRUTHY


class ServerConfig(BaseModel):
    """Runtime configuration resolved from environment."""

    gemini_api_key: str = Field(default="")
    default_model: str = Field(default="gemini-3-flash-preview")
    default_thinking_level: str = Field(default="low")
    default_temperature: float = Field(default=0.3)
    mock_provider: bool = Field(default=False)
    cache_enabled: bool = Field(default=True)
    cache_ttl_hours: int = Field(default=24)
    analysis_max_per_user_per_day: int = Field(default=100)
    db_path: str = Field(default="")
    batch_size: int = Field(default=10)
    batch_concurrency: int = Field(default=5)
    batch_delay_seconds: float = Field(default=0.5)
    cost_per_comment_usd: float = Field(default=0.01)
    max_comments_per_source: int = Field(default=500)
    retry_max_attempts: int = Field(default=3)
    retry_base_delay: float = Field(default=1.0)
    retry_max_delay: float = Field(default=60.0)
    youtube_api_key: str = Field(default="")
    reddit_user_agent: str = Field(default="comment-insights-mcp/0.1")
    infra_mutations_enabled: bool = Field(default=False)
    infra_admin_token: str = Field(default="")

    @field_validator("default_thinking_level")
    @classmethod
    def validate_thinking_level(cls, value: str) -> str:
        level = value.strip().lower()
        if level not in VALID_THINKING_LEVELS:
            allowed = ", ".join(sorted(VALID_THINKING_LEVELS))
            raise ValueError(f"Invalid thinking level '{value}'. Allowed: {allowed}")
        return level

    @field_validator(
        "cache_ttl_hours",
        "analysis_max_per_user_per_day",
        "batch_size",
        "batch_concurrency",
        "max_comments_per_source",
        "retry_max_attempts",
    )
    @classmethod
    def validate_positive_ints(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Configuration values must be >= 1")
        return value

    @field_validator("retry_base_delay", "retry_max_delay")
    @classmethod
    def validate_retry_delays(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Retry delay must be > 0")
        return value

    @field_validator("batch_delay_seconds", "cost_per_comment_usd")
    @classmethod
    def validate_non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("Value must be >= 0")
        return value

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Build config from environment variables."""
        from pathlib import Path

        db_default = str(Path.home() / ".cache" / "comment-insights-mcp" / "insights.db")
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            default_model=os.getenv("GEMINI_MODEL", "gemini-3-flash-preview"),
            default_thinking_level=os.getenv("GEMINI_THINKING_LEVEL", "low"),
            default_temperature=float(os.getenv("GEMINI_TEMPERATURE", "0.3")),
            mock_provider=_env_flag("MOCK_AI_PROVIDER", False),
            cache_enabled=_env_flag("ENABLE_AI_CACHE", True),
            cache_ttl_hours=int(os.getenv("CACHE_TTL_HOURS", "24")),
            analysis_max_per_user_per_day=int(os.getenv("ANALYSIS_MAX_PER_USER_PER_DAY", "100")),
            db_path=os.getenv("COMMENT_INSIGHTS_DB", db_default),
            batch_size=int(os.getenv("ANALYSIS_BATCH_SIZE", "10")),
            batch_concurrency=int(os.getenv("ANALYSIS_CONCURRENCY", "5")),
            batch_delay_seconds=float(os.getenv("ANALYSIS_BATCH_DELAY", "0.5")),
            cost_per_comment_usd=float(os.getenv("ANALYSIS_COST_PER_COMMENT", "0.01")),
            max_comments_per_source=int(os.getenv("MAX_COMMENTS_PER_SOURCE", "500")),
            retry_max_attempts=int(os.getenv("RETRY_MAX_ATTEMPTS", "3")),
            retry_base_delay=float(os.getenv("RETRY_BASE_DELAY", "1.0")),
            retry_max_delay=float(os.getenv("RETRY_MAX_DELAY", "60.0")),
            youtube_api_key=os.getenv("YOUTUBE_API_KEY", ""),
            reddit_user_agent=os.getenv("REDDIT_USER_AGENT", "comment-insights-mcp/0.1"),
            infra_mutations_enabled=_env_flag("INFRA_MUTATIONS_ENABLED", False),
            infra_admin_token=os.getenv("INFRA_ADMIN_TOKEN", ""),
        )


_config: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Return the process config, reading the environment on first access."""
    global _config
    if _config is None:
        _config = ServerConfig.from_env()
    return _config


def update_config(**overrides: object) -> ServerConfig:
    """Patch the live config (used by the ``infra_configure`` tool)."""
    global _config
    cfg = get_config()
    data = cfg.model_dump()
    data.update({k: v for k, v in overrides.items() if v is not None})
    _config = ServerConfig(**data)
    return _config
