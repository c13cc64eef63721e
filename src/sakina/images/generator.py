"""Themed illustration generation via Google Gemini.

Uses the google-genai SDK's async client.  A new client is built for
every call so a credential selected mid-session is picked up at once.
Failures are classified into PermissionOrQuotaError (the user should
supply another key) and GenerationError (plain retry).
"""

from __future__ import annotations

import base64
import logging
import os
from collections.abc import Callable
from typing import Protocol

from google import genai
from google.genai import errors, types

from sakina.errors import GenerationError, PermissionOrQuotaError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash-image"
API_KEY_ENV = "GOOGLE_AI_API_KEY"

PERMISSION_CODES = frozenset({401, 403, 429})

STYLE_PREAMBLE = (
    "A professional, high-quality minimalist artwork for a mental health app. "
    "Subject: {subject}. "
    "Style: Serene, soft pastel colors, clean lines, calming aesthetic, "
    "high resolution digital art. No text, no watermarks."
)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class KeyProvider(Protocol):
    """Environment capability for probing and (re)selecting the API key."""

    async def has_key(self) -> bool: ...

    async def select_key(self) -> None: ...

    def current_key(self) -> str | None: ...


class EnvKeyProvider:
    """Reads the key from the environment.

    ``prompt`` is called by select_key() to ask the user for a replacement;
    the answer overrides the environment for the rest of the process.
    Without a prompt, select_key() is a no-op.
    """

    def __init__(
        self,
        env_var: str = API_KEY_ENV,
        prompt: Callable[[], str] | None = None,
    ) -> None:
        self.env_var = env_var
        self._prompt = prompt
        self._override: str | None = None

    def current_key(self) -> str | None:
        key = self._override or os.environ.get(self.env_var, "").strip()
        return key or None

    async def has_key(self) -> bool:
        return self.current_key() is not None

    async def select_key(self) -> None:
        if self._prompt is None:
            return
        key = self._prompt().strip()
        if key:
            self._override = key
            logger.info("Image API key replaced for this session")


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


def classify_error(exc: BaseException) -> PermissionOrQuotaError | GenerationError:
    """Map a raw SDK failure onto the image error taxonomy."""
    is_api_error = isinstance(exc, errors.APIError)
    if is_api_error and getattr(exc, "code", None) in PERMISSION_CODES:
        return PermissionOrQuotaError(exc.code, str(exc))

    # The status may only be spelled out in the message; bare numbers are
    # trusted only when no structured code came with the error
    message = str(exc)
    if "PERMISSION_DENIED" in message or (not is_api_error and "403" in message):
        return PermissionOrQuotaError(403, message)
    if "RESOURCE_EXHAUSTED" in message or (not is_api_error and "429" in message):
        return PermissionOrQuotaError(429, message)
    return GenerationError(message or exc.__class__.__name__)


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class ImageGenerator:
    """Generate square illustrations and return them as data URIs."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        *,
        aspect_ratio: str = "1:1",
        key_provider: KeyProvider | None = None,
    ) -> None:
        self.model = model
        self.aspect_ratio = aspect_ratio
        self.key_provider = key_provider or EnvKeyProvider()

    def build_prompt(self, subject: str) -> str:
        return STYLE_PREAMBLE.format(subject=subject.strip())

    async def generate(self, prompt: str) -> str:
        """Generate one image for ``prompt``.

        Returns:
            A ``data:<mime>;base64,...`` string.

        Raises:
            PermissionOrQuotaError: No key, a rejected key, or exhausted quota.
            GenerationError: Any other failure, including a response without
                an image part.
        """
        api_key = self.key_provider.current_key()
        if not api_key:
            raise PermissionOrQuotaError(401, f"{API_KEY_ENV} not set")

        try:
            client = genai.Client(api_key=api_key)
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=self.build_prompt(prompt),
                config=types.GenerateContentConfig(
                    response_modalities=["IMAGE"],
                    image_config=types.ImageConfig(aspect_ratio=self.aspect_ratio),
                ),
            )
        except Exception as exc:
            logger.warning("Image generation failed for prompt: %s", prompt[:80], exc_info=True)
            raise classify_error(exc) from exc

        payload = _first_image(response)
        if payload is None:
            logger.warning("No image data in response for prompt: %s", prompt[:80])
            raise GenerationError("Response contained no image")
        return payload


def _first_image(response: object) -> str | None:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    content = getattr(candidates[0], "content", None)
    for part in getattr(content, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        if inline is None or not inline.data:
            continue
        data = inline.data
        if isinstance(data, bytes):
            data = base64.b64encode(data).decode("ascii")
        mime = inline.mime_type or "image/png"
        return f"data:{mime};base64,{data}"
    return None
