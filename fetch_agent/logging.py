import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

import structlog
from structlog.types import EventDict, WrappedLogger

# ============================================================================
# Configuration & Constants
# ============================================================================


class LogKeys(str, Enum):
    """Log field keys shared by the processors and the formatter."""

    SESSION_ID = "session_id"
    CONTEXT = "context"
    TIMESTAMP = "timestamp"
    LOGGER = "logger"
    MESSAGE = "message"
    LEVEL = "level"
    EXTRA = "extra"


STANDARD_FIELDS = frozenset(
    (
        LogKeys.TIMESTAMP.value,
        LogKeys.LOGGER.value,
        LogKeys.MESSAGE.value,
        LogKeys.CONTEXT.value,
        LogKeys.LEVEL.value,
    )
)


@dataclass(frozen=True)
class LogDefaults:
    """Default values for logging configuration."""

    context: str = "fetch_agent"
    log_level: str = "INFO"
    max_value_length: int = 60
    session_id_display_length: int = 8


DEFAULTS = LogDefaults()


# ============================================================================
# Context Operations
# ============================================================================


def _context_value(key: str, default: str) -> str:
    return str(structlog.contextvars.get_contextvars().get(key, default))


# ============================================================================
# Log Processing
# ============================================================================


def _restructure_event(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Move the event name to ``message`` and everything non-standard under ``extra``."""
    event_dict[LogKeys.MESSAGE.value] = event_dict.pop("event", "")
    event_dict[LogKeys.CONTEXT.value] = _context_value(LogKeys.CONTEXT.value, DEFAULTS.context)

    extra = {key: event_dict.pop(key) for key in list(event_dict) if key not in STANDARD_FIELDS}

    if extra:
        event_dict[LogKeys.EXTRA.value] = extra

    return event_dict


# ============================================================================
# Human-Readable Formatting
# ============================================================================


class ConsoleFormatter:
    """structlog renderer producing one readable line per event.

    Format: ``HH:MM:SS [LEVEL] logger: message [key=value, ...] [session:abcd1234]``
    """

    def __init__(self, defaults: LogDefaults = DEFAULTS):
        self.defaults = defaults

    def __call__(self, _: WrappedLogger, __: str, event_dict: EventDict) -> str:
        level = str(event_dict.get(LogKeys.LEVEL.value, "info")).upper()
        logger_name = self.short_logger_name(event_dict.get(LogKeys.LOGGER.value, ""))
        message = event_dict.get(LogKeys.MESSAGE.value, "")
        extra = dict(event_dict.get(LogKeys.EXTRA.value, {}))

        session_id = extra.pop(LogKeys.SESSION_ID.value, "")
        time_str = self.clock_time(event_dict.get(LogKeys.TIMESTAMP.value, ""))

        return (
            f"{time_str} [{level}] {logger_name}: {message}"
            f"{self.render_extra(extra)}{self.render_session(session_id)}"
        )

    def truncate(self, value: Any) -> str:
        text = str(value)
        limit = self.defaults.max_value_length
        return f"{text[: limit - 3]}..." if len(text) > limit else text

    def clock_time(self, timestamp: str) -> str:
        if not timestamp:
            return ""
        try:
            return datetime.fromisoformat(timestamp.replace("Z", "+00:00")).strftime("%H:%M:%S")
        except (ValueError, AttributeError):
            return timestamp.split("T")[1][:8] if "T" in timestamp else ""

    def render_session(self, session_id: str) -> str:
        if not session_id:
            return ""
        return f" [session:{session_id[: self.defaults.session_id_display_length]}]"

    def short_logger_name(self, logger_name: str) -> str:
        # fetch_agent.workflow -> workflow
        if not logger_name.startswith("fetch_agent."):
            return logger_name
        return logger_name.removeprefix("fetch_agent.")

    def render_extra(self, extra: dict[str, Any]) -> str:
        if not extra:
            return ""
        parts = [f"{key}={self.truncate(value)}" for key, value in extra.items()]
        return f" [{', '.join(parts)}]"


# ============================================================================
# Configuration
# ============================================================================


def configure_structlog(testing: bool = False) -> None:
    """Configure structlog with JSON output, or readable lines when ``testing``."""
    log_level = os.environ.get("LOGGING_LEVEL", DEFAULTS.log_level).upper()
    level = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(format="%(message)s", level=level, stream=sys.stdout)
    logging.getLogger().setLevel(level)

    processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.contextvars.merge_contextvars,
        structlog.processors.format_exc_info,
        _restructure_event,
        structlog.processors.TimeStamper(fmt="iso"),
        ConsoleFormatter() if testing else structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,  # type: ignore[arg-type]
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


# ============================================================================
# Public API
# ============================================================================


def bind_session(session_id: str, **kwargs: Any) -> None:
    """Bind a session id (and any extra fields) to the current context."""
    structlog.contextvars.bind_contextvars(session_id=session_id, **kwargs)


def clear_context_fields() -> None:
    structlog.contextvars.clear_contextvars()


def get_context_vars() -> dict[str, Any]:
    return structlog.contextvars.get_contextvars()


def get_logger(name: str = "") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name or __name__)  # type: ignore
