from __future__ import annotations

import contextvars
import json
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

ROOT_LOGGER = "fleet_ledger"
REQUEST_ID_HEADER = "x-request-id"

# Carried across awaits and into worker tasks; stamped on every record by ContextFilter.
_context: dict[str, contextvars.ContextVar[str | None]] = {
    name: contextvars.ContextVar(name, default=None)
    for name in ("request_id", "user_id", "celery_task_id")
}

_configured = False


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.context = {k: v for k, var in _context.items() if (v := var.get())}
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, event, ambient context, then event fields."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "ts": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "event": getattr(record, "event", None) or record.getMessage(),
        }
        payload.update(getattr(record, "context", None) or {})
        for key, value in (getattr(record, "fields", None) or {}).items():
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=True)


def configure_logging() -> None:
    global _configured  # noqa: PLW0603
    if _configured:
        return
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler()
    handler.addFilter(ContextFilter())
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.handlers = [handler]
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)


def set_request_context(*, request_id: str | None) -> tuple[contextvars.Token, contextvars.Token]:
    return _context["request_id"].set(request_id), _context["user_id"].set(None)


def reset_request_context(tokens: tuple[contextvars.Token, contextvars.Token]) -> None:
    request_token, user_token = tokens
    _context["request_id"].reset(request_token)
    _context["user_id"].reset(user_token)


def set_user_context(user_id: str | None) -> None:
    _context["user_id"].set(user_id)


def get_request_id() -> str | None:
    return _context["request_id"].get()


def set_task_context(task_id: str | None) -> contextvars.Token:
    return _context["celery_task_id"].set(task_id)


def reset_task_context(token: contextvars.Token) -> None:
    _context["celery_task_id"].reset(token)


def log_event(
    logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any
) -> None:
    logger.log(level, event, extra={"event": event, "fields": fields})


def log_exception(logger: logging.Logger, event: str, **fields: Any) -> None:
    logger.exception(event, extra={"event": event, "fields": fields})


def monotonic_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags every log line of a request with its id and echoes the id back to the caller."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        tokens = set_request_context(request_id=request_id)
        start = time.monotonic()
        logger = get_logger(__name__)
        try:
            response = await call_next(request)
            log_event(
                logger,
                "http.request.finish",
                level=logging.DEBUG,
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=monotonic_ms(start),
            )
        except Exception:
            log_exception(
                logger,
                "http.request.error",
                method=request.method,
                path=request.url.path,
                duration_ms=monotonic_ms(start),
            )
            raise
        finally:
            reset_request_context(tokens)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
