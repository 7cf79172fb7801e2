"""Application-wide error types and JSON error handlers."""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify

from dailyfx.providers.base import ProviderError
from dailyfx.services.rate_store import StoreError

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base class for API-level errors."""

    status_code: int = 400

    def __init__(
        self, message: str, *, status_code: int | None = None, payload: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}


class ValidationError(APIError):
    """Error raised for validation failures."""

    status_code = 422


DEFAULT_STATUS_MESSAGES: dict[int, str] = {
    400: "Request could not be processed.",
    404: "Resource not found.",
    422: "Submitted data is invalid.",
    429: "Too many requests. Please try again shortly.",
    502: "Upstream rate publisher unavailable.",
    503: "Rate store temporarily unavailable. Please retry in a moment.",
}


def register_error_handlers(app: Flask) -> None:
    """Attach error handlers to the Flask application."""

    @app.errorhandler(APIError)
    def handle_api_error(error: APIError):
        message = error.message or DEFAULT_STATUS_MESSAGES.get(error.status_code, "Request failed.")
        response: dict[str, Any] = {"message": message}
        response.update(error.payload)

        field = error.payload.get("field")
        if field and "field_errors" not in response:
            response["field_errors"] = {str(field): [message]}
        return jsonify(response), error.status_code

    @app.errorhandler(StoreError)
    def handle_store_error(error: StoreError):
        logger.error("Rate store failure: %s", error)
        return jsonify({"message": DEFAULT_STATUS_MESSAGES[503], "error": "store_unavailable"}), 503

    @app.errorhandler(ProviderError)
    def handle_provider_error(error: ProviderError):
        logger.warning("Upstream failure surfaced to client: %s", error)
        return jsonify({"message": DEFAULT_STATUS_MESSAGES[502], "error": str(error)}), 502
