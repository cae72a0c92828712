"""Test fixture package for the media cache.

Contains fixtures for:
- An in-memory remote provider
- Sample image payloads
- Wired media cache components and the HTTP app
"""

from .media import FakeClock, FakeProvider, make_image_bytes

__all__ = [
    "FakeClock",
    "FakeProvider",
    "make_image_bytes",
]
