"""Infrastructure tools: 3 tools on a FastMCP sub-server."""

from __future__ import annotations

from typing import Annotated

from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field, ValidationError

from ..config import MODEL_PRESETS, get_config, update_config
from ..errors import ErrorKind, InsightsError, make_tool_error
from ..services import get_services
from ..types import CacheAction, ModelPreset, ThinkingLevel, UserId

infra_server = FastMCP("infra")
_SENSITIVE_CONFIG_FIELDS = {
    "gemini_api_key",
    "youtube_api_key",
    "infra_admin_token",
}
_PROVIDER_FIELDS = {
    "default_model",
    "default_thinking_level",
    "default_temperature",
    "mock_provider",
}


def _redacted_config() -> dict:
    """Return runtime config with secret-bearing fields removed."""
    return get_config().model_dump(exclude=_SENSITIVE_CONFIG_FIELDS)


def _enforce_mutation_policy(auth_token: str | None) -> None:
    """Gate mutating infra operations behind explicit policy + optional token."""
    cfg = get_config()
    if not cfg.infra_mutations_enabled:
        raise PermissionError(
            "Infra mutations are disabled by policy. "
            "Set INFRA_MUTATIONS_ENABLED=true to enable mutating infra tools."
        )
    if cfg.infra_admin_token and auth_token != cfg.infra_admin_token:
        raise PermissionError(
            "Invalid or missing infra auth token for mutating operation."
        )


@infra_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=True,
        idempotentHint=True,
        openWorldHint=False,
    )
)
async def infra_cache(
    action: CacheAction = "stats",
    auth_token: Annotated[str | None, Field(
        description="Optional infra auth token (required when INFRA_ADMIN_TOKEN is configured)",
    )] = None,
) -> dict:
    """Manage the analysis cache: stats, sweep expired entries, or clear everything.

    Args:
        action: "stats", "sweep" (drop expired entries), or "clear" (drop all;
            subject to the mutation policy).

    Returns:
        Dict with cache statistics or the number of entries removed.
    """
    try:
        cache = get_services().cache
        if action == "stats":
            return cache.stats()
        if action == "sweep":
            return {"removed": cache.sweep()}
        if action == "clear":
            _enforce_mutation_policy(auth_token)
            return {"removed": cache.clear()}
        return {"error": f"Unknown action: {action}", "valid_actions": ["stats", "sweep", "clear"]}
    except Exception as exc:
        return make_tool_error(exc)


@infra_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    )
)
async def infra_usage(user_id: UserId = "default") -> dict:
    """Report a user's analysis counters and remaining daily allowance.

    Returns:
        Dict with usage counters, ``max_per_day``, ``remaining``, and
        ``can_analyze``.
    """
    try:
        limiter = get_services().limiter
        counter = limiter.usage(user_id)
        return {
            **counter.model_dump(mode="json"),
            "max_per_day": limiter.max_per_day,
            "remaining": limiter.remaining(user_id),
            "can_analyze": limiter.check_quota(user_id),
        }
    except Exception as exc:
        return make_tool_error(exc)


@infra_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    )
)
async def infra_configure(
    preset: Annotated[ModelPreset | None, Field(
        description='Named model preset: "quality" (3.1 Pro) or "budget" (3 Flash)',
    )] = None,
    model: Annotated[str | None, Field(description="Gemini model ID override (takes precedence over preset)")] = None,
    thinking_level: ThinkingLevel | None = None,
    temperature: Annotated[float | None, Field(ge=0.0, le=2.0, description="Sampling temperature")] = None,
    cache_enabled: Annotated[bool | None, Field(description="Turn the analysis cache on or off")] = None,
    cache_ttl_hours: Annotated[int | None, Field(ge=1, le=24 * 30, description="Cache entry lifetime")] = None,
    max_per_day: Annotated[int | None, Field(ge=1, description="Per-user daily analysis limit")] = None,
    mock_provider: Annotated[bool | None, Field(description="Use the deterministic offline provider")] = None,
    auth_token: Annotated[str | None, Field(
        description="Optional infra auth token (required when INFRA_ADMIN_TOKEN is configured)",
    )] = None,
) -> dict:
    """Reconfigure the server at runtime: model, cache, quota, or provider.

    Changes take effect immediately for all subsequent tool calls. Model
    changes rebuild the analysis provider; cached verdicts are kept.

    Returns:
        Dict with current_config, active_preset, and available_presets.
    """
    try:
        overrides: dict[str, object] = {}

        if preset is not None:
            if preset not in MODEL_PRESETS:
                valid = ", ".join(sorted(MODEL_PRESETS))
                raise ValueError(f"Unknown preset '{preset}'. Available: {valid}")
            overrides["default_model"] = MODEL_PRESETS[preset]["default_model"]

        # Explicit model overrides preset's default_model
        if model is not None:
            overrides["default_model"] = model
        if thinking_level is not None:
            overrides["default_thinking_level"] = thinking_level
        if temperature is not None:
            overrides["default_temperature"] = temperature
        if cache_enabled is not None:
            overrides["cache_enabled"] = cache_enabled
        if cache_ttl_hours is not None:
            overrides["cache_ttl_hours"] = cache_ttl_hours
        if max_per_day is not None:
            overrides["analysis_max_per_user_per_day"] = max_per_day
        if mock_provider is not None:
            overrides["mock_provider"] = mock_provider

        if overrides:
            _enforce_mutation_policy(auth_token)
            try:
                cfg = update_config(**overrides)
            except ValidationError as exc:
                raise InsightsError(ErrorKind.CONFIG_INVALID, str(exc)) from exc
            await get_services().reconfigure(
                cfg, rebuild_provider=bool(_PROVIDER_FIELDS & overrides.keys()),
            )
        else:
            cfg = get_config()

        active = None
        for name, p in MODEL_PRESETS.items():
            if cfg.default_model == p["default_model"]:
                active = name
                break

        return {
            "current_config": _redacted_config(),
            "active_preset": active,
            "available_presets": {k: v["label"] for k, v in MODEL_PRESETS.items()},
        }
    except Exception as exc:
        return make_tool_error(exc)
