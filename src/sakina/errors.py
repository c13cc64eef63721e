"""Error taxonomy shared across the journal, storage, and image layers."""

from __future__ import annotations


class SakinaError(Exception):
    """Base error for all sakina failures."""


class InvalidEntry(SakinaError):
    """A mood entry violates the journal invariants and was not persisted."""


class StorageFullError(SakinaError):
    """The key-value store has no room left for a write."""


class InvalidTransition(SakinaError):
    """An image request action was invoked from a state that does not allow it."""


class PremiumRequired(SakinaError):
    """A premium track was requested without an active subscription."""

    def __init__(self, track_id: str) -> None:
        super().__init__(f"Track {track_id!r} requires a premium subscription")
        self.track_id = track_id


class ImageError(SakinaError):
    """Base error for image generation failures."""


class PermissionOrQuotaError(ImageError):
    """The image service rejected the credential or the quota is exhausted.

    ``code`` carries the HTTP-equivalent class: 401 (no key), 403
    (forbidden) or 429 (rate limited).
    """

    def __init__(self, code: int, message: str = "") -> None:
        super().__init__(message or f"Image generation rejected ({code})")
        self.code = code


class GenerationError(ImageError):
    """Any other image generation failure, including responses with no image."""
