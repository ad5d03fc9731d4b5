"""Gemini client wrapper with thinking-level support and structured output."""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from google import genai
from google.genai import types
from pydantic import BaseModel

from .config import VALID_THINKING_LEVELS

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _resolve_thinking_level(value: str) -> str:
    """Normalize and validate a thinking level string.

    Raises:
        ValueError: If the level is not in VALID_THINKING_LEVELS.
    """
    level = value.strip().lower()
    if level not in VALID_THINKING_LEVELS:
        allowed = ", ".join(sorted(VALID_THINKING_LEVELS))
        raise ValueError(f"Invalid thinking level '{value}'. Allowed: {allowed}")
    return level


class GeminiClient:
    """One google-genai client plus the generation defaults it was built with.

    Constructed explicitly and handed to whatever needs it; there is no
    process-wide instance.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str,
        thinking_level: str = "low",
        temperature: float = 0.3,
        client: genai.Client | None = None,
    ) -> None:
        if not api_key and client is None:
            raise ValueError("No Gemini API key; set GEMINI_API_KEY or enable MOCK_AI_PROVIDER")
        self.model = model
        self.thinking_level = _resolve_thinking_level(thinking_level)
        self.temperature = temperature
        self._client = client or genai.Client(api_key=api_key)
        if client is None:
            logger.info("Created Gemini client (key …%s, model %s)", api_key[-4:], model)

    async def generate(
        self,
        contents: Any,
        *,
        model: str | None = None,
        response_schema: dict | None = None,
        system_instruction: str | None = None,
        temperature: float | None = None,
    ) -> str:
        """Generate text via Gemini, optionally constrained to a JSON schema.

        Args:
            contents: Prompt contents.
            model: Override model ID.
            response_schema: JSON schema dict to constrain output format.
            system_instruction: System-level instruction prepended to the prompt.
            temperature: Override temperature.

        Returns:
            The model's text response with thinking parts stripped.
        """
        config = types.GenerateContentConfig(
            thinking_config=types.ThinkingConfig(thinking_level=self.thinking_level),
            temperature=temperature if temperature is not None else self.temperature,
        )
        if system_instruction:
            config.system_instruction = system_instruction
        if response_schema:
            config.response_mime_type = "application/json"
            config.response_json_schema = response_schema

        response = await self._client.aio.models.generate_content(
            model=model or self.model,
            contents=contents,
            config=config,
        )

        # Strip thinking parts; only return user-visible text
        parts = response.candidates[0].content.parts if response.candidates else []
        text_parts = [p.text for p in parts if p.text and not getattr(p, "thought", False)]
        return "\n".join(text_parts) if text_parts else (response.text or "")

    async def generate_structured(
        self,
        contents: Any,
        *,
        schema: type[M],
        system_instruction: str | None = None,
        model: str | None = None,
    ) -> M:
        """Generate and validate into a Pydantic model via response_json_schema.

        Raises:
            pydantic.ValidationError: If the response does not match *schema*.
        """
        raw = await self.generate(
            contents,
            model=model,
            system_instruction=system_instruction,
            response_schema=schema.model_json_schema(),
        )
        return schema.model_validate_json(raw)

    async def close(self) -> None:
        """Shut down the underlying HTTP clients."""
        try:
            await self._client.aio.aclose()
        except Exception:
            logger.debug("Async Gemini client close failed", exc_info=True)
        try:
            self._client.close()
        except Exception:
            logger.debug("Gemini client close failed", exc_info=True)
        logger.info("Closed Gemini client")
