"""Routes for daily rate reads, backfill and manual synchronization."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from flask import current_app
from flask.views import MethodView

from dailyfx.errors import APIError, ValidationError
from dailyfx.providers.base import NotYetPublished
from dailyfx.schemas import (
    BackfillResponseSchema,
    DailyRatesSchema,
    DateRangeSchema,
    FetchAndStoreResponseSchema,
    FetchAndStoreSchema,
    HistoricalQuerySchema,
    HistoricalResponseSchema,
    SyncResponseSchema,
    SyncThrottleSchema,
    rates_payload,
)
from dailyfx.services.components import get_rate_services
from dailyfx.services.rate_store import MergeMode
from dailyfx.services.range_resolver import BackfillProgress
from dailyfx.services.scheduler import ensure_sync_state, sync_now
from dailyfx.validation import validate_currency_code, validate_date
from dailyfx.utils.datetime import span_days

from . import blp

DEFAULT_THROTTLE_SECONDS = 60

ACTION_MODES = {"update": MergeMode.FILL, "replace": MergeMode.OVERWRITE}


@blp.route("/latest")
class LatestRates(MethodView):
    @blp.response(200, DailyRatesSchema())
    def get(self):
        record = get_rate_services().read_path.get_latest()
        if record is None:
            raise APIError("No rates available yet.", status_code=404)
        return rates_payload(record)


@blp.route("/date/<string:day>")
class RatesForDate(MethodView):
    @blp.response(200, DailyRatesSchema())
    def get(self, day: str):
        target = validate_date(day, field="date")
        record = get_rate_services().read_path.get_for_date(target)
        if record is None:
            return {"date": target.isoformat(), "rates": []}, 404
        return rates_payload(record)


@blp.route("/historical")
class HistoricalRates(MethodView):
    @blp.arguments(HistoricalQuerySchema, location="query")
    @blp.response(200, HistoricalResponseSchema())
    def get(self, args):
        start, end = args["start"], args["end"]
        if start > end:
            raise ValidationError("'from' must not be after 'to'.", status_code=400, payload={"field": "from"})

        services = get_rate_services()
        currency = args.get("currency")
        if currency:
            code = validate_currency_code(currency)
            points = services.series.build_series(code, start, end, args["sampling"])
            return {
                "currency": code,
                "start": start.isoformat(),
                "end": end.isoformat(),
                "sampling": args["sampling"],
                "points": [point.as_dict() for point in points],
            }

        # Comparison mode: the two endpoint dates across all currencies.
        payload = []
        for day in sorted({start, end}):
            record = services.store.get(day)
            if record is not None and record.has_values:
                payload.append(rates_payload(record))
        return {"start": start.isoformat(), "end": end.isoformat(), "payload": payload}


@blp.route("/backfill")
class Backfill(MethodView):
    @blp.arguments(DateRangeSchema)
    @blp.response(200, BackfillResponseSchema())
    def post(self, args):
        start, end = args["start"], args["end"]
        if start > end:
            raise ValidationError("'from' must not be after 'to'.", status_code=400, payload={"field": "from"})

        events: list[BackfillProgress] = []
        report = get_rate_services().resolver.ensure_range(start, end, on_progress=events.append)
        return {
            "report": report.as_dict(),
            "progress": [event.as_dict() for event in events],
        }


@blp.route("/fetch-and-store")
class FetchAndStore(MethodView):
    @blp.arguments(FetchAndStoreSchema)
    @blp.response(200, FetchAndStoreResponseSchema())
    def post(self, args):
        start, end, action = args["start"], args["end"], args["action"]
        services = get_rate_services()
        max_days = services.publisher.max_chunk_days
        if start > end:
            raise ValidationError("'from' must not be after 'to'.", status_code=400, payload={"field": "from"})
        if span_days(start, end) > max_days:
            raise ValidationError(
                f"Date range may span at most {max_days} days.",
                status_code=400,
                payload={"field": "to"},
            )

        response = {"start": start.isoformat(), "end": end.isoformat(), "action": action}
        try:
            publication = services.publisher.fetch_range(start, end)
        except NotYetPublished:
            return {**response, "stored": 0, "failed": [], "message": "No rates published for range."}

        result = services.merger.merge(publication, ACTION_MODES[action])
        return {
            **response,
            "stored": result.affected,
            "failed": [day.isoformat() for day in result.failed],
            "message": f"Stored {result.affected} day(s).",
        }


@blp.route("/sync")
class ManualSync(MethodView):
    @blp.response(200, SyncResponseSchema())
    @blp.alt_response(429, schema=SyncThrottleSchema(), description="Sync throttled")
    def post(self):
        """Run one synchronizer tick, at most once per throttle window."""

        app = current_app._get_current_object()
        state = ensure_sync_state(app)
        now = datetime.now(UTC)

        throttle_seconds = max(
            int(app.config.get("SYNC_THROTTLE_SECONDS", DEFAULT_THROTTLE_SECONDS)), 0
        )
        throttle_until = state.get("throttle_until")
        if throttle_seconds and isinstance(throttle_until, datetime) and throttle_until > now:
            retry_after = max(int((throttle_until - now).total_seconds()), 1)
            raise APIError(
                "Sync throttled. Try again later.",
                status_code=429,
                payload={"retry_after": retry_after},
            )

        if throttle_seconds:
            state["throttle_until"] = now + timedelta(seconds=throttle_seconds)
        else:
            state.pop("throttle_until", None)

        result = sync_now(app)
        if result is None:
            raise APIError("Rate sync failed.", status_code=503)

        return {"message": "Sync completed.", **result.as_dict()}
