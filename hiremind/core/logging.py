import structlog
import logging
from .config import Settings, EnvironmentType

def setup_logging(settings: Settings) -> None:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.ENVIRONMENT == EnvironmentType.DEVELOPMENT:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.DEBUG
    if settings.ENVIRONMENT == EnvironmentType.PRODUCTION:
        level = max(level, logging.INFO)

    structlog.configure(
        processors=processors,
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=settings.ENVIRONMENT == EnvironmentType.PRODUCTION,
    )


def bind_session(session_id: str, **extra) -> None:
    """Attach the interview session id to every log line of the current task."""
    structlog.contextvars.bind_contextvars(session_id=session_id, **extra)


def clear_session() -> None:
    structlog.contextvars.clear_contextvars()
