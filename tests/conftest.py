"""Pytest configuration and fixtures."""

import os

import pytest

TEST_ENV = {
    "SUPABASE_URL": "https://test.supabase.co",
    "SUPABASE_SERVICE_ROLE_KEY": "test-key",
    "OPENAI_API_KEY": "test-openai-key",
    "GOOGLE_AI_API_KEY": "test-google-key",
    "MM_AI_AGENT_KEY": "test-agent-key",
    "MUSE_ENV": "test",
}

# Modules read settings at import time during collection
for _key, _value in TEST_ENV.items():
    os.environ.setdefault(_key, _value)


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ.update(TEST_ENV)
    from app.core.config import get_settings

    get_settings.cache_clear()
