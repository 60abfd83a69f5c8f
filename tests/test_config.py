# tests/test_config.py
from hiremind.core.config import EnvironmentType, Settings


def test_settings_defaults(monkeypatch):
    """Test default settings values."""
    for name in ("ENVIRONMENT", "DEBUG", "APP_NAME", "COMPLETION_CONFIDENCE_THRESHOLD"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings(_env_file=None)
    assert settings.APP_NAME == "HireMind Interview Room"
    assert settings.ENVIRONMENT == EnvironmentType.DEVELOPMENT
    assert settings.DEBUG is True
    assert settings.HOST == "0.0.0.0"
    assert settings.PORT == 8000
    assert settings.COMPLETION_CONFIDENCE_THRESHOLD == 0.7
    assert settings.QUESTION_MAX_ATTEMPTS == 5
    assert settings.SKIP_PENALTY_POINTS == 10
    assert settings.AI_MODEL == "llama-3.3-70b-versatile"


def test_settings_environment_override(test_env_vars):
    """Test environment variable overrides."""
    settings = Settings()
    assert settings.APP_NAME == "HireMind Test"
    assert settings.ENVIRONMENT == EnvironmentType.TESTING


def test_tunables_from_environment(monkeypatch):
    monkeypatch.setenv("SILENCE_TIMEOUT_SECONDS", "3.5")
    monkeypatch.setenv("BARGE_IN_ENABLED", "false")
    settings = Settings(_env_file=None)
    assert settings.SILENCE_TIMEOUT_SECONDS == 3.5
    assert settings.BARGE_IN_ENABLED is False
