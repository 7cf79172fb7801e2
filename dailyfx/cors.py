"""CORS headers for the browser dashboard and public API consumers."""

from __future__ import annotations

from collections.abc import Iterable

from flask import Response, make_response, request


def init_cors(app) -> None:
    """Answer preflight requests and tag responses for allowed origins."""

    if app.config.get("_cors_configured"):
        return

    origins = _split(app.config.get("CORS_ALLOWED_ORIGINS", ()))
    if not origins:
        return

    headers = ", ".join(_split(app.config.get("CORS_ALLOWED_HEADERS", ("Content-Type",))))
    methods = ", ".join(_split(app.config.get("CORS_ALLOWED_METHODS", ("GET", "POST", "OPTIONS"))))
    max_age = str(int(app.config.get("CORS_MAX_AGE", 600)))
    wildcard = "*" in origins

    def allowed(origin: str | None) -> bool:
        return bool(origin) and (wildcard or origin in origins)

    @app.before_request
    def _preflight():
        origin = request.headers.get("Origin")
        if request.method != "OPTIONS" or origin is None:
            return None
        if not allowed(origin):
            return make_response("", 403)

        response = make_response("", 204)
        response.headers["Access-Control-Allow-Methods"] = methods
        response.headers["Access-Control-Allow-Headers"] = request.headers.get(
            "Access-Control-Request-Headers", headers
        )
        response.headers["Access-Control-Max-Age"] = max_age
        return response

    @app.after_request
    def _tag_response(response: Response):
        origin = request.headers.get("Origin")
        if allowed(origin):
            response.headers["Access-Control-Allow-Origin"] = "*" if wildcard else origin
            response.headers["Access-Control-Expose-Headers"] = "X-Request-ID"
            response.vary.add("Origin")
        return response

    app.config["_cors_configured"] = True


def _split(raw: str | Iterable[str]) -> tuple[str, ...]:
    values = raw.split(",") if isinstance(raw, str) else raw
    return tuple(item.strip() for item in values if item and item.strip())
