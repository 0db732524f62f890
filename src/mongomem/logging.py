"""Logging configuration for mongomem.

The package itself only creates module loggers. Test suites and tools that
want formatted output call setup_logging() once.

Supports two formats:
- text: Human-readable for local development
- json: Structured logging for CI log collection
"""

import logging
import sys
import time
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger import json as jsonlogger

from mongomem.config import LoggingConfig
from mongomem.logging_schema import LogEvent

# Always logged, however often they repeat
_MILESTONE_EVENTS = frozenset(
    {
        LogEvent.PROCESS_SPAWNED,
        LogEvent.INSTANCE_READY,
        LogEvent.INSTANCE_STOPPED,
        LogEvent.LAUNCH_FAILED,
    }
)


class RateLimitFilter(logging.Filter):
    """Collapses bursts of the same log statement.

    Records are keyed by logger, event and the unformatted message, so a
    retry loop logging "could not bind port %d" with a new port each time
    counts as one statement. mongod output lines are logged verbatim and are
    keyed by their text. ERROR records and lifecycle milestones always pass.

    Args:
        rate_limit_seconds: Minimum seconds between records with the same key (default: 5)
        max_cache_size: Keys remembered, least recently logged evicted first (default: 1000)
    """

    def __init__(
        self,
        rate_limit_seconds: float = 5.0,
        max_cache_size: int = 1000,
        name: str = "",
    ) -> None:
        super().__init__(name)
        self._rate_limit = rate_limit_seconds
        self._max_cache = max_cache_size
        self._last_log: OrderedDict[tuple[str, str | None, str], float] = OrderedDict()

    @staticmethod
    def _key(record: logging.LogRecord) -> tuple[str, str | None, str]:
        event = getattr(record, "event", None)
        return record.name, str(event) if event is not None else None, str(record.msg)

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.ERROR:
            return True
        if getattr(record, "event", None) in _MILESTONE_EVENTS:
            return True

        key = self._key(record)
        now = time.monotonic()
        last_time = self._last_log.get(key)
        if last_time is not None and now - last_time < self._rate_limit:
            return False

        self._last_log[key] = now
        self._last_log.move_to_end(key)
        while len(self._last_log) > self._max_cache:
            self._last_log.popitem(last=False)
        return True


class MongoMemoryJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with standard fields for log aggregation.

    Adds:
    - timestamp: ISO 8601 format with timezone
    - level: Log level name
    - logger: Logger name
    - service: Service identifier
    - pid: Process ID (of the python process, not mongod)
    """

    def __init__(self, config: LoggingConfig, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._service = config.service_name

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = self._service
        log_record["pid"] = record.process

        log_record["filename"] = record.filename
        log_record["lineno"] = record.lineno

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


def setup_logging(config: LoggingConfig) -> None:
    """Configure the mongomem logger tree.

    Args:
        config: Logging configuration settings.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)

    if config.format == "json":
        formatter: logging.Formatter = MongoMemoryJsonFormatter(config)
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.addFilter(RateLimitFilter(rate_limit_seconds=5.0))

    package_logger = logging.getLogger("mongomem")
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False
