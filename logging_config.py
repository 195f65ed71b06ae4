"""
Logging configuration for the adaptive director.

Readable lines while tuning locally, JSON records once the director runs
inside a game server. Components log through module loggers; the
director wraps its own in a StructuredLoggerAdapter so records carry the
director id and, during a generation, the id of the room being built.
"""

import logging
import os
import sys
from typing import IO, Any, Mapping, Optional

from pythonjsonlogger import jsonlogger

from constants import LOG_FORMAT_JSON, LOG_LEVEL_DEVELOPMENT, LOG_LEVEL_PRODUCTION

SERVICE_NAME = "adaptive-director"

# Analyzer debug output is per-sample; keep it quieter than the rest
DEFAULT_LEVEL_OVERRIDES: dict[str, str] = {
    "performance_analyzer": "INFO",
    "events": "INFO",
}


class ContextualJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter stamping every record with time, level, logger and service.

    rename_fields maps our keys onto the names a log shipper expects,
    e.g. {'timestamp': '@timestamp', 'level': 'severity'}.
    """

    def __init__(
        self,
        *args,
        rename_fields: Optional[dict] = None,
        static_fields: Optional[dict] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.rename_fields = rename_fields or {}
        self.static_fields = {"service": SERVICE_NAME} if static_fields is None else static_fields

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        # Keys named in the format string arrive as None
        if not log_record.get('timestamp'):
            log_record['timestamp'] = self.formatTime(record, self.datefmt)

        if not log_record.get('level'):
            log_record['level'] = record.levelname

        if not log_record.get('logger'):
            log_record['logger'] = record.name

        for key, value in self.static_fields.items():
            if log_record.get(key) is None:
                log_record[key] = value

        for old_name, new_name in self.rename_fields.items():
            if old_name in log_record:
                log_record[new_name] = log_record.pop(old_name)


def _resolve_json(use_json: Optional[bool]) -> bool:
    if use_json is not None:
        return use_json
    return os.getenv("LOG_FORMAT_JSON", str(LOG_FORMAT_JSON)).lower() in ("true", "1", "yes")


def _resolve_level(log_level: Optional[str]) -> str:
    if log_level is not None:
        return log_level
    env = os.getenv("ENV", "production").lower()
    return LOG_LEVEL_DEVELOPMENT if env in ("dev", "development") else LOG_LEVEL_PRODUCTION


def setup_logging(
    use_json: Optional[bool] = None,
    log_level: Optional[str] = None,
    stream: Optional[IO[str]] = None,
    level_overrides: Optional[Mapping[str, str]] = None,
) -> None:
    """
    Configure the root logger for the director process.

    Args:
        use_json: JSON records when True; falls back to LOG_FORMAT_JSON
        log_level: Root level; falls back to ENV (development -> DEBUG)
        stream: Destination, stdout by default
        level_overrides: Per-logger levels applied after the root level.
                         DEFAULT_LEVEL_OVERRIDES applies when None and the
                         root level is DEBUG.
    """
    use_json = _resolve_json(use_json)
    log_level = _resolve_level(log_level).upper()

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    if use_json:
        handler.setFormatter(ContextualJsonFormatter(
            '%(timestamp)s %(level)s %(logger)s %(message)s',
            rename_fields={'timestamp': '@timestamp', 'level': 'severity'},
        ))
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level))

    if level_overrides is None:
        level_overrides = DEFAULT_LEVEL_OVERRIDES if log_level == "DEBUG" else {}
    for name, level in level_overrides.items():
        logging.getLogger(name).setLevel(getattr(logging, level.upper()))


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """
    Adapter that merges bound context into every record's extra fields.

    Usage:
        log = StructuredLoggerAdapter(logging.getLogger(__name__), {"director_id": "main"})
        room_log = log.bind(room_id=room.id)
        room_log.info_event("room_generated", "Room ready", quality_score=72.0)
    """

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = dict(self.extra)
        extra.update(kwargs.get('extra') or {})
        kwargs['extra'] = extra
        return msg, kwargs

    def bind(self, **context: Any) -> "StructuredLoggerAdapter":
        """Child adapter carrying this adapter's context plus `context`."""
        return StructuredLoggerAdapter(self.logger, {**self.extra, **context})

    def log_event(self, level: int, event_type: str, message: str, **context: Any) -> None:
        """
        Log a typed event.

        Args:
            level: Logging level
            event_type: Machine-readable event name, e.g. "difficulty_changed"
            message: Human-readable message
            **context: Extra fields for the record
        """
        context['event_type'] = event_type
        self.log(level, message, extra=context)

    def info_event(self, event_type: str, message: str, **context: Any) -> None:
        self.log_event(logging.INFO, event_type, message, **context)

    def warning_event(self, event_type: str, message: str, **context: Any) -> None:
        self.log_event(logging.WARNING, event_type, message, **context)

    def error_event(self, event_type: str, message: str, **context: Any) -> None:
        self.log_event(logging.ERROR, event_type, message, **context)

    def debug_event(self, event_type: str, message: str, **context: Any) -> None:
        self.log_event(logging.DEBUG, event_type, message, **context)
