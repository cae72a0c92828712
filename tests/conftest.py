"""Test configuration."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv
from pytest import Config

from mediacache.core.logging import configure_logging

project_dir = Path(__file__).parent.parent

# Test-specific configuration, if present, wins over the developer's .env
env_test_file = project_dir / ".env.test"
if env_test_file.exists():
    load_dotenv(env_test_file, override=True)

# Never talk to a real Drive account from the test suite
os.environ.pop("GOOGLE_SERVICE_ACCOUNT_JSON", None)
os.environ.pop("KEEPALIVE_URL", None)

fixture = pytest.fixture


@fixture(scope="session")
def project_root() -> Path:
    """Get the project root directory."""
    return project_dir


pytest_plugins: list[str] = [
    "tests.fixtures.media",
    "tests.fixtures.api",
]


def pytest_configure(config: Config) -> None:
    """Configure pytest.

    Args:
        config: Pytest configuration object
    """
    # Configure logging for test environment
    configure_logging(testing=True)
    config.addinivalue_line("markers", "integration: mark test as an integration test")
