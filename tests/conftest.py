# tests/conftest.py
import os

import pytest
from fastapi.testclient import TestClient

from doubles import FakeManager


@pytest.fixture
def test_env_vars():
    """Set up test environment variables."""
    os.environ["ENVIRONMENT"] = "testing"
    os.environ["DEBUG"] = "true"
    os.environ["APP_NAME"] = "HireMind Test"
    yield
    # Clean up
    os.environ.pop("ENVIRONMENT", None)
    os.environ.pop("DEBUG", None)
    os.environ.pop("APP_NAME", None)


@pytest.fixture
def settings(test_env_vars):
    """Get test settings."""
    from hiremind.core.config import get_settings
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def fast_settings():
    """Settings with timers short enough to drive whole interviews in a test."""
    from hiremind.core.config import Settings
    return Settings(
        ENVIRONMENT="testing",
        OPENAI_API_KEY=None,
        ELEVENLABS_API_KEY=None,
        SILENCE_TIMEOUT_SECONDS=0.2,
        CLASSIFIER_TIMEOUT_SECONDS=0.5,
        MAX_TURN_SECONDS=2.0,
        SYNTHESIS_FALLBACK_DELAY_SECONDS=0.01,
        SPEECH_PLAYBACK_TIMEOUT_SECONDS=2.0,
        ANALYSIS_ATTEMPTS=2,
        SAVE_ATTEMPTS=2,
    )


@pytest.fixture
def store():
    from hiremind.storage.sessions import InMemorySessionStore
    return InMemorySessionStore()


@pytest.fixture
def manager():
    return FakeManager()


@pytest.fixture
def app(fast_settings, store, manager):
    """Create test app instance."""
    from hiremind.interface.api.main import create_app
    # leave the test client time to answer before the silence timer fires
    settings = fast_settings.model_copy(update={"SILENCE_TIMEOUT_SECONDS": 3.0, "MAX_TURN_SECONDS": 10.0})
    return create_app(settings, store=store, manager=manager)


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)
