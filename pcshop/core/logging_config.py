"""
Structured logging configuration

Every record is emitted as one JSON object. Request, correlation and actor
ids bound for the current request are attached to each record, and order,
event, item and configuration ids passed in ``extra_fields`` are lifted into
an ``entity`` section so one order can be followed across checkout, webhook
and cancellation logs.
"""

import json
import logging
import logging.handlers
import re
import sys
import time
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from pcshop.core_settings import get_settings

ENTITY_KEYS = ("order_id", "event_id", "item_id", "configuration_id")
QUIET_PATHS = ("/health", "/metrics")

_log_context: ContextVar[Dict[str, str]] = ContextVar("log_context", default={})

class StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        settings = get_settings()
        entry: Dict[str, Any] = {
            "@timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": {
                "name": settings.SERVICE_NAME,
                "version": settings.SERVICE_VERSION,
                "environment": settings.ENVIRONMENT,
            },
            "origin": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        context = _log_context.get()
        if context:
            entry["trace"] = dict(context)

        fields = dict(getattr(record, "extra_fields", None) or {})
        entity = {key: fields.pop(key) for key in ENTITY_KEYS if key in fields}
        if entity:
            entry["entity"] = entity
        if fields:
            entry["custom"] = fields

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            entry["error"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "stacktrace": traceback.format_exception(exc_type, exc_value, exc_tb),
            }

        return json.dumps(entry, default=str)

class SecurityFilter(logging.Filter):
    """Redact secrets, bearer tokens and webhook signatures from messages."""

    SENSITIVE_FIELDS = (
        "password", "token", "api_key", "secret",
        "authorization", "signature", "cookie",
    )
    _pattern = re.compile(
        r"(?i)\b(" + "|".join(SENSITIVE_FIELDS) + r")\b(\s*[=:]\s*)([^\s;]+)"
    )

    def filter(self, record: logging.LogRecord) -> bool:
        original = record.getMessage()
        redacted = self._pattern.sub(r"\1\2***REDACTED***", original)
        if redacted != original:
            record.msg = redacted
            record.args = None
        return True

def setup_logging(
    service_name: Optional[str] = None,
    level: Optional[str] = None,
    enable_console: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Route all logging through the JSON formatter.

    Args:
        service_name: overrides SERVICE_NAME from settings
        level: log level name, defaults to LOG_LEVEL from settings
        enable_console: write to stdout
        log_file: also write to a rotating file at this path
    """
    settings = get_settings()
    if service_name:
        settings.SERVICE_NAME = service_name
    level_name = (level or settings.LOG_LEVEL).upper()

    handlers = []
    if enable_console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file:
        handlers.append(logging.handlers.RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5))

    root = logging.getLogger()
    root.setLevel(level_name)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(StructuredFormatter())
        handler.addFilter(SecurityFilter())
        root.addHandler(handler)

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpx", "alembic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    root.info("Logging configured", extra={"extra_fields": {"level": level_name}})

class LoggerAdapter(logging.LoggerAdapter):
    """Adds the bound request context to ``extra`` for handlers that want it flat."""

    def process(self, msg, kwargs):
        context = _log_context.get()
        if context:
            kwargs["extra"] = {**context, **kwargs.get("extra", {})}
        return msg, kwargs

def get_logger(name: str) -> LoggerAdapter:
    return LoggerAdapter(logging.getLogger(name), {})

def set_request_context(
    request_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
    user_id: Optional[str] = None
) -> None:
    """Bind ids to every record logged for the rest of this request."""
    updates = {"request_id": request_id, "correlation_id": correlation_id, "user_id": user_id}
    context = dict(_log_context.get())
    context.update({key: value for key, value in updates.items() if value})
    _log_context.set(context)

def clear_request_context() -> None:
    _log_context.set({})

def generate_request_id() -> str:
    return uuid.uuid4().hex

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request, with timing; echoes X-Request-ID.

    Health and metrics probes are logged at DEBUG.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        clear_request_context()
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_context(request_id=request_id, correlation_id=request.headers.get("X-Correlation-ID"))
        logger = get_logger("pcshop.http")
        started = time.perf_counter()
        fields = {"method": request.method, "path": request.url.path}

        try:
            response = await call_next(request)
        except Exception:
            fields["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
            logger.error(f"{request.method} {request.url.path} failed", exc_info=True,
                         extra={"extra_fields": fields})
            raise

        fields["status_code"] = response.status_code
        fields["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
        level = logging.DEBUG if request.url.path.startswith(QUIET_PATHS) else logging.INFO
        logger.log(level, f"{request.method} {request.url.path} -> {response.status_code}",
                   extra={"extra_fields": fields})
        response.headers["X-Request-ID"] = request_id
        return response
