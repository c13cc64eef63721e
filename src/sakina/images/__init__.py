"""Generated-image cache and resilience layer.

Fetches themed illustrations from the image service, caches them by a
stable key, and surfaces credential problems as an explicit NEEDS_KEY
state instead of retrying.
"""

from sakina.images.cache import CACHE_PREFIX, ImageCache
from sakina.images.generator import EnvKeyProvider, ImageGenerator, KeyProvider, classify_error
from sakina.images.request import ImageRequest, ImageResult, ImageService, ImageState

__all__ = [
    "CACHE_PREFIX",
    "EnvKeyProvider",
    "ImageCache",
    "ImageGenerator",
    "ImageRequest",
    "ImageResult",
    "ImageService",
    "ImageState",
    "KeyProvider",
    "classify_error",
]
