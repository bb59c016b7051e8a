"""
PULSE SIGNAL — Structured Logging Utility
structlog event logging for the pipeline. Log lines go to stderr so command
output (backtest JSON) on stdout stays machine-readable.
"""
import structlog
import logging
import sys
from typing import Optional

from pulse_signal.config.settings import AppSettings, get_settings


def _renderer(json_output: bool):
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def setup_logging(settings: Optional[AppSettings] = None, level: Optional[str] = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Debug mode renders human-readable console lines, otherwise one JSON object
    per event. `level` overrides the configured log level (e.g. from a CLI flag).
    """
    settings = settings or get_settings()
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _renderer(json_output=not settings.debug),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)


def bind_session(**context) -> None:
    """Attach key/values (symbol, session id) to every event logged afterwards."""
    structlog.contextvars.bind_contextvars(**context)


def clear_session() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str = None) -> structlog.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name or "pulse_signal")
