"""Logging setup and structured JSON output for the daily rates service."""

from __future__ import annotations

import json
import logging
import time
import uuid
from collections.abc import Iterable
from datetime import UTC, date, datetime
from typing import Any

from flask import g, has_request_context, request
from werkzeug.exceptions import HTTPException

REQUEST_ID_HEADER = "X-Request-ID"

LOGGING_CONFIG_FLAG = "_logging_configured"
REQUEST_LOGGING_FLAG = "_request_logging_configured"

# Attributes every LogRecord carries; anything else came in through ``extra``.
RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime"}


class JSONLogFormatter(logging.Formatter):
    """Render a LogRecord as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = record.stack_info

        payload.update(_extract_extras(record.__dict__))
        return json.dumps(_json_safe(payload), separators=(",", ":"))


def setup_logging(app) -> None:
    """Install a single stream handler on the root logger.

    Runs once per application; a second call is a no-op so tests that build
    several apps do not stack handlers.
    """

    if app.config.get(LOGGING_CONFIG_FLAG):
        return

    level = _resolve_level(app.config.get("LOG_LEVEL", "INFO"))
    json_enabled = _to_bool(app.config.get("LOG_JSON_ENABLED", False))
    format_string = app.config.get(
        "LOG_FORMAT",
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(JSONLogFormatter() if json_enabled else logging.Formatter(format_string))

    root_logger = logging.getLogger()
    _replace_handlers(root_logger, [handler])
    root_logger.setLevel(level)

    # APScheduler is chatty at INFO on every tick.
    logging.getLogger("apscheduler").setLevel(max(level, logging.WARNING))
    logging.getLogger("werkzeug").handlers = []
    app.logger.handlers = []
    app.logger.setLevel(level)
    app.logger.propagate = True

    app.config[LOGGING_CONFIG_FLAG] = True


def init_request_logging(app) -> None:
    """Log one line per request with a correlation id."""

    if app.config.get(REQUEST_LOGGING_FLAG):
        return

    @app.before_request
    def _start_request_logging():
        g.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        g.request_start = time.perf_counter()
        g._request_logged = False

    @app.after_request
    def _log_request(response):
        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers.setdefault(REQUEST_ID_HEADER, request_id)

        extras = _build_request_log_extra(
            event="request.completed",
            status=response.status_code,
            request_id=request_id,
            duration_ms=_request_duration_ms(),
        )
        app.logger.info("Request handled", extra=extras)
        g._request_logged = True
        return response

    @app.teardown_request
    def _log_teardown(exc: BaseException | None):
        if exc is None or getattr(g, "_request_logged", False):
            return

        status = getattr(exc, "code", 500) if isinstance(exc, HTTPException) else 500
        extras = _build_request_log_extra(
            event="request.failed",
            status=status,
            request_id=getattr(g, "request_id", None),
            duration_ms=_request_duration_ms(),
            error=str(exc),
        )
        app.logger.error("Request failed", extra=extras)
        g._request_logged = True

    app.config[REQUEST_LOGGING_FLAG] = True


def upstream_log_extra(
    *,
    upstream: str,
    event: str,
    status: str,
    start: date | None = None,
    end: date | None = None,
    duration_ms: float | None = None,
    error: str | None = None,
) -> dict[str, Any]:
    """Structured fields attached to every upstream fetch log line."""

    payload: dict[str, Any] = {
        "event": event,
        "upstream": upstream,
        "status": status,
        "from_date": start.isoformat() if start else None,
        "to_date": end.isoformat() if end else None,
        "duration_ms": round(duration_ms, 3) if duration_ms is not None else None,
        "request_id": _current_request_id(),
        "error": error,
    }
    return {key: value for key, value in payload.items() if value is not None}


def sync_log_extra(
    *,
    event: str,
    outcome: str,
    target: date | None = None,
    **fields: Any,
) -> dict[str, Any]:
    """Structured fields for synchronizer and backfill events."""

    payload: dict[str, Any] = {
        "event": event,
        "outcome": outcome,
        "target_date": target.isoformat() if target else None,
        "request_id": _current_request_id(),
    }
    payload.update(fields)
    return {key: value for key, value in payload.items() if value is not None}


def _request_duration_ms() -> float | None:
    start = getattr(g, "request_start", None)
    if not isinstance(start, int | float):
        return None
    return float((time.perf_counter() - start) * 1000)


def _build_request_log_extra(
    *,
    event: str,
    status: int,
    request_id: str | None,
    duration_ms: float | None,
    error: str | None = None,
) -> dict[str, Any]:
    route = request.url_rule.rule if request.url_rule else request.path
    payload: dict[str, Any] = {
        "event": event,
        "route": route,
        "method": request.method,
        "status": status,
        "duration_ms": round(duration_ms, 3) if duration_ms is not None else None,
        "request_id": request_id,
        "path": request.path,
        "error": error,
        "client_ip": request.remote_addr,
    }
    return {key: value for key, value in payload.items() if value is not None}


def _extract_extras(record_dict: dict[str, Any]) -> dict[str, Any]:
    return {
        key: _json_safe(value)
        for key, value in record_dict.items()
        if key not in RESERVED_ATTRS and not key.startswith("_")
    }


def _json_safe(value: Any) -> Any:
    if isinstance(value, str | int | float | bool) or value is None:
        return value
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, list | tuple | set):
        return [_json_safe(item) for item in value]
    return str(value)


def _resolve_level(level_name: Any) -> int:
    if isinstance(level_name, int):
        return level_name
    if not level_name:
        return logging.INFO
    return getattr(logging, str(level_name).upper(), logging.INFO)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _replace_handlers(logger: logging.Logger, handlers: Iterable[logging.Handler]) -> None:
    for existing in logger.handlers[:]:
        logger.removeHandler(existing)
    for handler in handlers:
        logger.addHandler(handler)


def _current_request_id() -> str | None:
    if not has_request_context():
        return None
    return getattr(g, "request_id", None)
