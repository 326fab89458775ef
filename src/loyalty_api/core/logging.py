from __future__ import annotations

import json
import logging
import sys
from logging import LogRecord
from typing import Any, Dict

from loguru import logger
from opentelemetry import trace

# Attributes every stdlib LogRecord carries; anything else was passed via ``extra=``.
_STANDARD_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

# Driver loggers that are chatty at INFO.
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "aiosqlite")


class InterceptHandler(logging.Handler):
    """Forward stdlib logging records (uvicorn, sqlalchemy, alembic) into Loguru."""

    def emit(self, record: LogRecord) -> None:  # pragma: no cover - bridging glue
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        extra = {key: value for key, value in vars(record).items() if key not in _STANDARD_RECORD_ATTRS}
        extra.setdefault("logger_name", record.name)
        logger.bind(**extra).opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _attach_trace_context(record: Dict[str, Any]) -> None:
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        record["extra"]["trace_id"] = f"{span_context.trace_id:032x}"
        record["extra"]["span_id"] = f"{span_context.span_id:016x}"


def _json_sink(message: "logger.Message") -> None:
    record = message.record
    extra = dict(record["extra"])
    payload: Dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name.lower(),
        "message": record["message"],
        "logger": extra.pop("logger_name", record["name"]),
        "service": extra.pop("service", "unknown"),
        "environment": extra.pop("environment", "unknown"),
        "version": extra.pop("version", "unknown"),
    }
    payload.update(extra)

    exception = record["exception"]
    if exception is not None and exception.type is not None:
        payload["exception"] = f"{exception.type.__name__}: {exception.value}"

    sys.stdout.write(json.dumps(payload, default=str) + "\n")
    sys.stdout.flush()


def configure_logging(*, service_name: str, environment: str, version: str, level: str = "INFO") -> None:
    """Send Loguru and stdlib logging to a single JSON-lines stdout sink."""

    logger.remove()
    logger.configure(
        extra={"service": service_name, "environment": environment, "version": version},
        patcher=_attach_trace_context,
    )
    logger.add(_json_sink, level=level.upper(), backtrace=False, diagnose=False)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
