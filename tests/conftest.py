"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It ensures that the TESTING environment variable is set to prevent
loading the .env file during tests.
"""

import os

# CRITICAL: Set this before any imports that might load settings
# This prevents Pydantic from loading the .env file in tests
os.environ["TESTING"] = "true"

# Set default env vars that all tests might need
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from authguard.core.rate_limit import reset_rate_limiting  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_rate_limiter():
    """Give every test its own process-wide limiter and stop any sweeper afterwards."""
    reset_rate_limiting()
    yield
    reset_rate_limiting()
