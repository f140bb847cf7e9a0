"""JSON logging for the conversation relay.

One JSON object per line on stdout. Structured fields travel in
`extra={"context": {...}}`; the correlation ids listed in `CORRELATION_FIELDS`
are also lifted to the top level so a single conversation can be followed
across dispatches without digging into `context`.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, TextIO

SERVICE_NAME = "conversation-relay"

CORRELATION_FIELDS = ("partition_key", "pipeline", "activation_id")

NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            for name in CORRELATION_FIELDS:
                if context.get(name) is not None:
                    entry[name] = context[name]
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(
    level: str = "INFO",
    stream: Optional[TextIO] = None,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """Install the JSON handler on the root logger, replacing existing handlers."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"relay.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """Binds fixed context (e.g. a partition key) to every record.

    A per-call `context=` kwarg is merged over the bound fields.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        call_context = kwargs.pop("context", None) or {}
        merged = {**(self.extra or {}), **call_context}
        if merged:
            kwargs["extra"] = {**kwargs.get("extra", {}), "context": merged}
        return msg, kwargs
