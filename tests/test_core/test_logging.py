"""Tests for logging configuration."""

import logging
from collections.abc import Generator

import pytest
import structlog
from structlog.testing import capture_logs

from mediacache.core.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def restore_logging() -> Generator[None, None, None]:
    yield
    configure_logging(testing=True)


def _renderer() -> str:
    return structlog.get_config()["processors"][-1].__class__.__name__


def test_json_renderer_in_production() -> None:
    configure_logging(json_logs=True)
    assert _renderer() == "JSONRenderer"


def test_key_value_renderer_when_testing() -> None:
    configure_logging(testing=True, json_logs=True)
    assert _renderer() == "KeyValueRenderer"


def test_context_variables_are_merged() -> None:
    configure_logging(testing=True)
    processors = structlog.get_config()["processors"]
    assert structlog.contextvars.merge_contextvars in processors


@pytest.mark.parametrize(
    ("level", "expected"),
    [("debug", logging.DEBUG), ("WARNING", logging.WARNING), ("bogus", logging.INFO)],
)
def test_level_names(level: str, expected: int) -> None:
    configure_logging(level=level)
    assert logging.getLogger().level == expected
    assert len(logging.getLogger().handlers) == 1


def test_get_logger_emits_structured_events() -> None:
    with capture_logs() as logs:
        get_logger("mediacache.test").info("cache_entry_evicted", file_id="abc")

    assert logs == [
        {"event": "cache_entry_evicted", "file_id": "abc", "log_level": "info"}
    ]
