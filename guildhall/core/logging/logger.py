"""
Guildhall logging: structured records carrying the current guild operation.

Every service call opens a ``LogContext`` naming the calling account, the
guild and the operation. A filter copies those fields onto each record, so a
failed ``kick_player`` can be traced from the service log line down to the
database warning it caused.

Records are handed to a bounded queue on the calling task and written by a
``QueueListener`` thread:

- console: JSON in production (or per LOG_JSON), text otherwise
- ``logs/guildhall.json.log``: JSON, rotated at midnight UTC, when LOG_TO_FILE

Logging is set up on import from ``Config``; ``shutdown_logging`` flushes and
detaches the handlers.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from typing import Any, Dict, List, Optional

from guildhall.core.config.config import Config

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(operation)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "guildhall.json.log"
QUEUE_MAX_SIZE = 10_000

CONTEXT_FIELDS = ("account_id", "guild_name", "operation", "correlation_id")

_request_context: ContextVar[Dict[str, Any]] = ContextVar("request_context", default={})
_queue_listener: Optional[QueueListener] = None

# Attributes every LogRecord has; anything else on a record came from `extra=`
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "component", *CONTEXT_FIELDS}


class ContextFilter(logging.Filter):
    """Stamp the active LogContext onto a record; `extra=` or "N/A" where unset."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _request_context.get({})
        for field in CONTEXT_FIELDS:
            setattr(record, field, context.get(field, getattr(record, field, "N/A")))
        record.component = record.name.split(".", 1)[0]
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, "N/A")
            if value != "N/A":
                entry[field] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        if extra:
            entry["extra"] = extra
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class _DroppingQueueHandler(QueueHandler):
    """Never block a guild operation on a full log queue."""

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            sys.stderr.write("guildhall: log queue full, record dropped\n")


def _level() -> int:
    return getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO)


def _use_json() -> bool:
    if Config.LOG_JSON is None:
        return Config.is_production()
    return bool(Config.LOG_JSON)


def _handlers() -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(
        JSONFormatter() if _use_json() else logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT)
    )
    handlers: List[logging.Handler] = [console]

    if Config.LOG_TO_FILE:
        Config.LOGS_DIR.mkdir(parents=True, exist_ok=True)
        daily = TimedRotatingFileHandler(
            Config.LOGS_DIR / LOG_FILE_NAME,
            when="midnight",
            backupCount=1,
            encoding="utf-8",
            utc=True,
        )
        daily.setFormatter(JSONFormatter())
        handlers.append(daily)

    for handler in handlers:
        handler.setLevel(_level())
    return handlers


def setup_logging() -> None:
    global _queue_listener

    root = logging.getLogger()
    if _queue_listener is not None:
        return

    root.setLevel(_level())
    root.handlers.clear()

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(QUEUE_MAX_SIZE)
    _queue_listener = QueueListener(log_queue, *_handlers(), respect_handler_level=True)
    _queue_listener.start()

    # Context is read on the calling task, before the record crosses threads
    queue_handler = _DroppingQueueHandler(log_queue)
    queue_handler.addFilter(ContextFilter())
    root.addHandler(queue_handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": Config.ENVIRONMENT.value,
            "log_level": logging.getLevelName(_level()),
            "json": _use_json(),
            "to_file": Config.LOG_TO_FILE,
        },
    )


def shutdown_logging() -> None:
    global _queue_listener

    if _queue_listener is None:
        return

    logging.getLogger(__name__).info("Shutting down logging")
    _queue_listener.stop()
    for handler in _queue_listener.handlers:
        handler.close()
    _queue_listener = None

    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, _DroppingQueueHandler):
            root.removeHandler(handler)


def is_logging_initialized() -> bool:
    return _queue_listener is not None


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Scope account, guild and operation onto every record logged inside.

    Unset fields are inherited from the enclosing scope, so a nested scope
    keeps the outer correlation id.

    >>> async with LogContext(account_id=7, guild_name="Ravens", operation="kick_player"):
    ...     logger.info("Kicking Balin")
    """

    def __init__(
        self,
        account_id: Optional[int] = None,
        guild_name: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        context = dict(_request_context.get({}))
        if account_id is not None:
            context["account_id"] = str(account_id)
        if guild_name is not None:
            context["guild_name"] = guild_name
        if operation is not None:
            context["operation"] = operation
        context["correlation_id"] = (
            correlation_id or context.get("correlation_id") or uuid.uuid4().hex[:8]
        )

        self.context = context
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _request_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _request_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def get_log_context() -> Dict[str, Any]:
    return dict(_request_context.get({}))


def clear_log_context() -> None:
    _request_context.set({})


setup_logging()
