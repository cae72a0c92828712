"""Tests for application settings."""

import pytest
from pydantic import ValidationError

from mediacache.core.config import Settings


def test_defaults() -> None:
    settings = Settings()

    assert settings.LISTING_TTL_SECONDS == 600
    assert settings.RECONCILE_INTERVAL_SECONDS == 5
    assert settings.PIPELINE_CONCURRENCY == 5
    assert settings.RANGE_CHUNK_SIZE == 1_000_000
    assert settings.image_resize_box == (1920, 1080)
    assert settings.video_target_box is None
    assert settings.KEEPALIVE_INTERVAL_SECONDS == 45


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PIPELINE_CONCURRENCY", "2")
    monkeypatch.setenv("VIDEO_TARGET_WIDTH", "1280")
    monkeypatch.setenv("VIDEO_TARGET_HEIGHT", "720")
    monkeypatch.setenv("IMAGE_RAW_MIME_TYPES", '["image/gif"]')

    settings = Settings()

    assert settings.PIPELINE_CONCURRENCY == 2
    assert settings.video_target_box == (1280, 720)
    assert settings.IMAGE_RAW_MIME_TYPES == ["image/gif"]


def test_resize_box_can_be_disabled() -> None:
    settings = Settings(IMAGE_RESIZE_WIDTH=None, IMAGE_RESIZE_HEIGHT=None)

    assert settings.image_resize_box is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"IMAGE_RESIZE_WIDTH": None},
        {"VIDEO_TARGET_WIDTH": 640},
    ],
)
def test_half_configured_box_is_rejected(overrides: dict[str, int | None]) -> None:
    with pytest.raises(ValidationError):
        Settings(**overrides)


def test_concurrency_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Settings(PIPELINE_CONCURRENCY=0)


def test_wildcard_cors_origins_fall_back_to_localhost() -> None:
    settings = Settings(cors_origins=["*"])

    assert "*" not in settings.cors_origins
    assert "http://localhost:3000" in settings.cors_origins
