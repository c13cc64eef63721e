"""Tests for the image request state machine and ImageService."""

import asyncio

import pytest
from sakina.errors import GenerationError, InvalidTransition, PermissionOrQuotaError
from sakina.images.cache import ImageCache
from sakina.images.request import ImageRequest, ImageService, ImageState
from sakina.storage import MemoryStore


class FakeKeys:
    def __init__(self, has_key: bool = True) -> None:
        self.present = has_key
        self.selections = 0

    def current_key(self) -> str | None:
        return "key" if self.present else None

    async def has_key(self) -> bool:
        return self.present

    async def select_key(self) -> None:
        self.selections += 1
        self.present = True


class FakeGenerator:
    """Plays back a scripted list of outcomes, one per generate() call."""

    def __init__(self, *outcomes, delay: float = 0.0, has_key: bool = True) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[str] = []
        self.delay = delay
        self.key_provider = FakeKeys(has_key)

    async def generate(self, prompt: str) -> str:
        self.calls.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _service(generator: FakeGenerator, kv: MemoryStore | None = None) -> ImageService:
    return ImageService(generator, ImageCache(kv if kv is not None else MemoryStore()))  # type: ignore[arg-type]


class TestLoad:
    def test_cache_hit_resolves_without_generation(self):
        gen = FakeGenerator()
        service = _service(gen)
        service.cache.set("hero", "cached")

        result = asyncio.run(ImageRequest("hero", "prompt", service).load())

        assert result.state is ImageState.RESOLVED
        assert result.payload == "cached"
        assert gen.calls == []

    def test_miss_generates_and_caches(self):
        gen = FakeGenerator("fresh")
        service = _service(gen)

        result = asyncio.run(ImageRequest("hero", "prompt", service).load())

        assert result.state is ImageState.RESOLVED
        assert service.cache.get("hero") == "fresh"
        assert gen.calls == ["prompt"]

    def test_quota_error_needs_key_even_with_key(self):
        gen = FakeGenerator(PermissionOrQuotaError(429))
        request = ImageRequest("new-key", "prompt", _service(gen))

        result = asyncio.run(request.load())

        assert result.state is ImageState.NEEDS_KEY
        assert result.error

    def test_other_failure_is_error(self):
        gen = FakeGenerator(GenerationError("no image"))
        result = asyncio.run(ImageRequest("k", "p", _service(gen)).load())
        assert result.state is ImageState.ERROR
        assert result.error == "no image"

    def test_no_key_needs_key_without_calling_service(self):
        gen = FakeGenerator(has_key=False)
        result = asyncio.run(ImageRequest("k", "p", _service(gen)).load())
        assert result.state is ImageState.NEEDS_KEY
        assert gen.calls == []

    def test_load_twice_not_allowed(self):
        gen = FakeGenerator("x")
        request = ImageRequest("k", "p", _service(gen))
        asyncio.run(request.load())
        with pytest.raises(InvalidTransition):
            asyncio.run(request.load())


class TestRecovery:
    def test_provide_key_selects_then_regenerates(self):
        gen = FakeGenerator(PermissionOrQuotaError(403), "img")
        request = ImageRequest("k", "p", _service(gen))

        async def scenario():
            await request.load()
            return await request.provide_key()

        result = asyncio.run(scenario())

        assert result.state is ImageState.RESOLVED
        assert gen.key_provider.selections == 1
        assert len(gen.calls) == 2

    def test_retry_from_error(self):
        gen = FakeGenerator(GenerationError("flaky"), "img")
        request = ImageRequest("k", "p", _service(gen))

        async def scenario():
            await request.load()
            return await request.retry()

        assert asyncio.run(scenario()).state is ImageState.RESOLVED

    def test_no_automatic_retry(self):
        gen = FakeGenerator(PermissionOrQuotaError(429), "unused")
        request = ImageRequest("k", "p", _service(gen))
        asyncio.run(request.load())
        assert len(gen.calls) == 1
        assert request.state is ImageState.NEEDS_KEY

    def test_retry_not_allowed_from_needs_key(self):
        gen = FakeGenerator(PermissionOrQuotaError(429))
        request = ImageRequest("k", "p", _service(gen))
        asyncio.run(request.load())
        with pytest.raises(InvalidTransition):
            asyncio.run(request.retry())

    def test_provide_key_not_allowed_from_error(self):
        gen = FakeGenerator(GenerationError("x"))
        request = ImageRequest("k", "p", _service(gen))
        asyncio.run(request.load())
        with pytest.raises(InvalidTransition):
            asyncio.run(request.provide_key())

    def test_resolved_is_terminal(self):
        gen = FakeGenerator("img")
        request = ImageRequest("k", "p", _service(gen))
        asyncio.run(request.load())
        with pytest.raises(InvalidTransition):
            asyncio.run(request.retry())
        with pytest.raises(InvalidTransition):
            asyncio.run(request.provide_key())


class TestImageService:
    def test_concurrent_requests_share_one_generation(self):
        gen = FakeGenerator("img", delay=0.01)
        service = _service(gen)

        async def scenario():
            return await asyncio.gather(
                service.fetch("same", "p"),
                service.fetch("same", "p"),
                service.fetch("same", "p"),
            )

        assert asyncio.run(scenario()) == ["img", "img", "img"]
        assert len(gen.calls) == 1
        assert not service.in_flight("same")

    def test_different_keys_are_independent(self):
        gen = FakeGenerator("a", "b", delay=0.01)
        service = _service(gen)

        async def scenario():
            return await asyncio.gather(service.fetch("k1", "p1"), service.fetch("k2", "p2"))

        assert sorted(asyncio.run(scenario())) == ["a", "b"]
        assert len(gen.calls) == 2

    def test_failure_reaches_every_waiter(self):
        gen = FakeGenerator(PermissionOrQuotaError(429), delay=0.01)
        service = _service(gen)

        async def scenario():
            return await asyncio.gather(
                service.fetch("k", "p"), service.fetch("k", "p"), return_exceptions=True
            )

        results = asyncio.run(scenario())
        assert all(isinstance(r, PermissionOrQuotaError) for r in results)
        assert len(gen.calls) == 1

    def test_uncacheable_image_still_served(self):
        gen = FakeGenerator("z" * 100)
        service = _service(gen, MemoryStore(capacity=10))
        assert asyncio.run(service.fetch("k", "p")) == "z" * 100
        assert service.cache.get("k") is None
