from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Mapping

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
# Fields every record logged in the current request or unit of work carries.
log_context_var: ContextVar[Mapping[str, Any]] = ContextVar("log_context", default={})


@contextmanager
def bind_log_context(**fields: Any) -> Iterator[None]:
    """Attach ``fields`` to every record logged inside the block.

    Nested blocks add to the outer fields; ``None`` values are skipped.
    """

    bound = {key: value for key, value in fields.items() if value is not None}
    token = log_context_var.set({**log_context_var.get(), **bound})
    try:
        yield
    finally:
        log_context_var.reset(token)


class JsonLogFormatter(logging.Formatter):
    """Render log records as JSON for easier ingestion."""

    def __init__(self, service: str | None = None) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.service:
            payload["service"] = self.service
        request_id = request_id_ctx_var.get()
        if request_id:
            payload["request_id"] = request_id
        payload.update(log_context_var.get())
        extra = getattr(record, "extra_data", None)
        if isinstance(extra, Mapping):
            payload.update(extra)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), default=str)


def configure_logging(level: str = "INFO", json_output: bool = True, service: str | None = None) -> None:
    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JsonLogFormatter(service=service))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    logging.root.handlers = [handler]
    logging.root.setLevel(level.upper())
