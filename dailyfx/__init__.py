"""Application factory for the dailyfx rate service."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from flask import Flask
from flask_smorest import Api

from config import get_config
from .cli import register_cli
from .database import init_app as init_db


def create_app(config_name: str | None = None, overrides: Mapping[str, Any] | None = None) -> Flask:
    """Build the Flask app; ``overrides`` win over the selected config class."""

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)

    _configure_logging(app)
    _configure_api(app)
    api = _register_extensions(app)
    _register_blueprints(app, api)
    _register_error_handlers(app)

    register_cli(app)
    return app


def _configure_logging(app: Flask) -> None:
    from .cors import init_cors
    from .logging import init_request_logging, setup_logging

    setup_logging(app)
    init_request_logging(app)
    init_cors(app)


def _configure_api(app: Flask) -> None:
    app.config.setdefault("API_TITLE", "dailyfx API")
    app.config.setdefault("API_VERSION", "v1")
    app.config.setdefault("OPENAPI_VERSION", "3.0.3")
    app.config.setdefault("OPENAPI_URL_PREFIX", "/docs")
    app.config.setdefault("OPENAPI_SWAGGER_UI_PATH", "/")
    app.config.setdefault(
        "OPENAPI_SWAGGER_UI_URL",
        "https://cdn.jsdelivr.net/npm/swagger-ui-dist/",
    )


def _register_extensions(app: Flask) -> Api:
    """Initialise the store, rate services and scheduler."""

    init_db(app)
    from . import models  # noqa: F401  # Ensure models are imported for metadata
    from .services import ensure_sync_state, init_rate_services, init_scheduler
    from .utils.currencies import init_registry

    init_registry(app)
    init_rate_services(app)
    ensure_sync_state(app)
    init_scheduler(app)

    api = Api(app)
    app.extensions["smorest_api"] = api
    return api


def _register_blueprints(app: Flask, api: Api) -> None:
    from .currencies import blp as currencies_blp
    from .health import blp as health_blp
    from .rates import blp as rates_blp

    api.register_blueprint(health_blp, url_prefix="/health")
    api.register_blueprint(currencies_blp, url_prefix="/currencies")
    api.register_blueprint(rates_blp, url_prefix="/rates")


def _register_error_handlers(app: Flask) -> None:
    from .errors import register_error_handlers

    register_error_handlers(app)
