"""Shared text-generation calls.

All LLM text goes through the Anthropic API using ``ANTHROPIC_API_KEY``.
Callers that must never fail (the reframe assistant) catch LLMError.
"""

from __future__ import annotations

import logging
import os

import anthropic

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Base error for LLM calls."""


class EmptyResponseError(LLMError):
    """The model answered with no text."""


# ---------------------------------------------------------------------------
# Model name mapping
# ---------------------------------------------------------------------------

_MODEL_MAP: dict[str, str] = {
    "sonnet": "claude-sonnet-4-6",
    "haiku": "claude-haiku-4-5-20251001",
    "opus": "claude-opus-4-6",
}

_DEFAULT_MODEL = "claude-haiku-4-5-20251001"


def _resolve_model(model: str | None) -> str:
    """Resolve a short model name to an API model ID."""
    if model is None:
        return _DEFAULT_MODEL
    return _MODEL_MAP.get(model, model)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def call_llm(
    system_prompt: str,
    user_prompt: str,
    *,
    model: str | None = None,
    timeout: int = 60,
    max_tokens: int = 512,
    temperature: float | None = None,
    label: str = "generation",
) -> str:
    """Call Claude and return the response text.

    Args:
        system_prompt: System prompt for the LLM.
        user_prompt: User/content prompt.
        model: Optional model override (e.g. "sonnet", "haiku").
        timeout: Timeout in seconds.
        max_tokens: Response token cap.
        temperature: Optional sampling temperature.
        label: Label for logging.

    Returns:
        The LLM response text (stripped).

    Raises:
        LLMError: On any failure, including an empty response.
    """
    api_key = os.environ.get("ANTHROPIC_API_KEY", "").strip()
    if not api_key:
        raise LLMError("ANTHROPIC_API_KEY not set")

    resolved_model = _resolve_model(model)
    logger.debug("Calling Anthropic API model=%s (%s)", resolved_model, label)

    kwargs: dict[str, object] = {
        "model": resolved_model,
        "max_tokens": max_tokens,
        "messages": [{"role": "user", "content": user_prompt}],
    }
    if system_prompt.strip():
        kwargs["system"] = system_prompt
    if temperature is not None:
        kwargs["temperature"] = temperature

    try:
        client = anthropic.Anthropic(api_key=api_key, timeout=timeout)
        response = client.messages.create(**kwargs)  # type: ignore[arg-type]
    except Exception as exc:
        raise LLMError(f"Anthropic API failed (label={label}): {exc}") from exc

    text_parts: list[str] = []
    for block in response.content:
        if block.type == "text":
            text_parts.append(block.text)

    result = "".join(text_parts).strip()
    if not result:
        raise EmptyResponseError(f"Anthropic API returned empty response (label={label})")
    return result
