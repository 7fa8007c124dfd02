"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any ``mcmeet`` import so the settings
object is built with test-friendly values and no .env file is picked up.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from mcmeet.core.app_factory import create_app

START_MS = 1_700_000_000_000


@pytest.fixture
def clock() -> Mock:
    """Millisecond clock frozen at START_MS; move it via ``clock.return_value``."""
    return Mock(return_value=START_MS)


@pytest.fixture
def app(clock: Mock):
    return create_app(clock=clock)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
