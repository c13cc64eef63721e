"""Per-image request lifecycle.

An ImageRequest walks one ``(cache_key, prompt)`` pair through
IDLE → LOADING → RESOLVED | NEEDS_KEY | ERROR.  Leaving NEEDS_KEY or
ERROR always takes an explicit user action (provide_key or retry);
nothing here retries on its own.

ImageService owns the cache-or-generate step and coalesces concurrent
generations for the same cache_key into one in-flight task.
"""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from sakina.errors import (
    GenerationError,
    ImageError,
    InvalidTransition,
    PermissionOrQuotaError,
    StorageFullError,
)
from sakina.images.cache import ImageCache
from sakina.images.generator import ImageGenerator, KeyProvider

logger = logging.getLogger(__name__)


class ImageState(StrEnum):
    """Lifecycle state of one image request."""

    IDLE = "idle"
    LOADING = "loading"
    RESOLVED = "resolved"
    NEEDS_KEY = "needs_key"
    ERROR = "error"


class ImageResult(BaseModel):
    """Tagged outcome handed back to the caller."""

    model_config = ConfigDict(frozen=True)

    state: ImageState
    payload: str | None = None
    error: str | None = None


class ImageService:
    """Cache-first image fetching with per-key request coalescing."""

    def __init__(self, generator: ImageGenerator, cache: ImageCache) -> None:
        self.generator = generator
        self.cache = cache
        self._inflight: dict[str, asyncio.Task[str]] = {}

    @property
    def key_provider(self) -> KeyProvider:
        return self.generator.key_provider

    async def fetch(self, cache_key: str, prompt: str) -> str:
        """Return the cached image for ``cache_key`` or generate it.

        Concurrent callers for the same key share one generation.  A
        finished generation is written to the cache even if the caller
        that started it has gone away.

        Raises:
            PermissionOrQuotaError: The credential was rejected or rate-limited.
            GenerationError: Any other failure.
        """
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        task = self._inflight.get(cache_key)
        if task is None:
            task = asyncio.ensure_future(self._generate(cache_key, prompt))
            self._inflight[cache_key] = task
            task.add_done_callback(lambda t: self._forget(cache_key, t))
        else:
            logger.debug("Joining in-flight generation for %s", cache_key)
        # shield() keeps the shared task alive if one waiter is cancelled
        return await asyncio.shield(task)

    def _forget(self, cache_key: str, task: asyncio.Task[str]) -> None:
        if self._inflight.get(cache_key) is task:
            del self._inflight[cache_key]

    async def _generate(self, cache_key: str, prompt: str) -> str:
        payload = await self.generator.generate(prompt)
        try:
            self.cache.set(cache_key, payload)
        except StorageFullError:
            logger.warning("Could not cache image %s, serving it uncached", cache_key)
        else:
            logger.info("Cached generated image %s", cache_key)
        return payload

    def in_flight(self, cache_key: str) -> bool:
        return cache_key in self._inflight


class ImageRequest:
    """State machine for one displayed image."""

    def __init__(self, cache_key: str, prompt: str, service: ImageService) -> None:
        self.cache_key = cache_key
        self.prompt = prompt
        self._service = service
        self.state = ImageState.IDLE
        self.payload: str | None = None
        self.error: ImageError | None = None

    def result(self) -> ImageResult:
        return ImageResult(
            state=self.state,
            payload=self.payload,
            error=str(self.error) if self.error else None,
        )

    async def load(self) -> ImageResult:
        """Resolve from cache, or start the first generation."""
        if self.state is not ImageState.IDLE:
            raise InvalidTransition(f"load() not allowed from {self.state}")

        cached = self._service.cache.get(self.cache_key)
        if cached is not None:
            self.payload = cached
            self.state = ImageState.RESOLVED
            return self.result()

        if not await self._service.key_provider.has_key():
            self.error = PermissionOrQuotaError(401, "No image API key selected")
            self.state = ImageState.NEEDS_KEY
            return self.result()

        return await self._run()

    async def provide_key(self) -> ImageResult:
        """Ask the environment for a new credential, then regenerate."""
        if self.state is not ImageState.NEEDS_KEY:
            raise InvalidTransition(f"provide_key() not allowed from {self.state}")
        await self._service.key_provider.select_key()
        return await self._run()

    async def retry(self) -> ImageResult:
        """Regenerate after a generic failure."""
        if self.state is not ImageState.ERROR:
            raise InvalidTransition(f"retry() not allowed from {self.state}")
        return await self._run()

    async def _run(self) -> ImageResult:
        self.state = ImageState.LOADING
        self.error = None
        try:
            self.payload = await self._service.fetch(self.cache_key, self.prompt)
        except PermissionOrQuotaError as exc:
            self.error = exc
            self.state = ImageState.NEEDS_KEY
        except GenerationError as exc:
            self.error = exc
            self.state = ImageState.ERROR
        else:
            self.state = ImageState.RESOLVED
        return self.result()
