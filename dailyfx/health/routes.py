"""Route handlers for health checks."""

from __future__ import annotations

from datetime import date, datetime

from flask import current_app
from flask.views import MethodView

from dailyfx.schemas import HealthRatesSchema, HealthStatusSchema
from dailyfx.services.components import get_rate_services
from dailyfx.services.scheduler import ensure_sync_state
from dailyfx.services.synchronizer import SyncOutcome

from . import blp

FAILED_OUTCOMES = {"error", SyncOutcome.UNRECOVERABLE.value, SyncOutcome.TRANSPORT_ERROR.value}


def _iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value is not None else None


@blp.route("")
class HealthStatus(MethodView):
    @blp.response(200, HealthStatusSchema())
    def get(self):
        return {
            "status": "ok",
            "app": current_app.config.get("APP_NAME", "dailyfx"),
        }


@blp.route("/rates")
class HealthRates(MethodView):
    @blp.response(200, HealthRatesSchema())
    def get(self):
        services = get_rate_services()
        state = ensure_sync_state(current_app)
        latest = services.store.latest()

        last_outcome = state.get("last_outcome")
        if latest is None and last_outcome is None:
            status = "uninitialized"
        elif last_outcome in FAILED_OUTCOMES:
            status = "degraded"
        else:
            status = "ok"

        return {
            "status": status,
            "upstream": services.publisher.name,
            "latest_date": _iso(latest.date) if latest else None,
            "last_run": _iso(state.get("last_run")),
            "last_outcome": last_outcome,
            "last_success": _iso(state.get("last_success")),
            "last_failure": _iso(state.get("last_failure")),
        }
