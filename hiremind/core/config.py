from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from enum import Enum
from pathlib import Path

class EnvironmentType(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"

class Settings(BaseSettings):
    # Basic Settings
    APP_NAME: str = "HireMind Interview Room"
    ENVIRONMENT: EnvironmentType = EnvironmentType.DEVELOPMENT
    DEBUG: bool = True
    API_PREFIX: str = "/api"
    WEBSOCKET_PATH: str = "/ws/interview"

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "DEBUG"

    # AI Settings (any OpenAI-compatible endpoint, e.g. Groq)
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    AI_MODEL: str = "llama-3.3-70b-versatile"
    LLM_TIMEOUT_SECONDS: float = 30.0

    # Text-to-speech
    ELEVENLABS_API_KEY: str | None = None
    ELEVENLABS_URL: str = "https://api.elevenlabs.io/v1/text-to-speech"
    TTS_VOICE_ID: str = "21m00Tcm4TlvDq8ikWAM"
    TTS_MODEL_ID: str = "eleven_monolingual_v1"
    TTS_TIMEOUT_SECONDS: float = 15.0

    # Turn taking
    COMPLETION_CONFIDENCE_THRESHOLD: float = 0.7
    CLASSIFIER_TIMEOUT_SECONDS: float = 5.0
    SILENCE_TIMEOUT_SECONDS: float = 8.0
    MAX_TURN_SECONDS: float = 180.0
    SYNTHESIS_FALLBACK_DELAY_SECONDS: float = 0.3
    SPEECH_PLAYBACK_TIMEOUT_SECONDS: float = 60.0
    BARGE_IN_ENABLED: bool = True
    SPEECH_LEVEL_THRESHOLD: float = 0.02

    # Retry caps
    QUESTION_MAX_ATTEMPTS: int = 5
    ANALYSIS_ATTEMPTS: int = 3
    SAVE_ATTEMPTS: int = 2

    # Scoring
    SKIP_PENALTY_POINTS: int = 10

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./interview_sessions.db"
    # Paths
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    LOGS_DIR: Path = BASE_DIR / "logs"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra='ignore'
    )

@lru_cache
def get_settings() -> Settings:
    return Settings()
