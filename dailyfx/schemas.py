"""Schemas for API requests and responses."""

from __future__ import annotations

from typing import Any

from marshmallow import Schema, fields, validate

from dailyfx.services.rate_store import DailyRateRecord
from dailyfx.services.series import Sampling
from dailyfx.utils.currencies import registry


class HealthStatusSchema(Schema):
    status = fields.String(required=True)
    app = fields.String()


class HealthRatesSchema(Schema):
    status = fields.String(required=True)
    upstream = fields.String(allow_none=True)
    latest_date = fields.String(allow_none=True)
    last_run = fields.String(allow_none=True)
    last_outcome = fields.String(allow_none=True)
    last_success = fields.String(allow_none=True)
    last_failure = fields.String(allow_none=True)


class CurrencySchema(Schema):
    code = fields.String(required=True)
    name = fields.String(required=True)
    unit = fields.Integer(required=True)


class CurrencyValidationRequestSchema(Schema):
    code = fields.String(load_default=None)


class CurrencyValidationResponseSchema(Schema):
    code = fields.String(required=True)
    message = fields.String(required=True)


class CurrencyInfoSchema(Schema):
    iso3 = fields.String(required=True)
    name = fields.String(required=True)
    unit = fields.Integer(required=True)


class RateEntrySchema(Schema):
    currency = fields.Nested(CurrencyInfoSchema, required=True)
    buy = fields.Float(allow_none=True)
    sell = fields.Float(allow_none=True)


class DailyRatesSchema(Schema):
    date = fields.String(required=True)
    published_on = fields.String(allow_none=True)
    modified_on = fields.String(allow_none=True)
    rates = fields.List(fields.Nested(RateEntrySchema), required=True)


class DateRangeSchema(Schema):
    start = fields.Date(required=True, data_key="from")
    end = fields.Date(required=True, data_key="to")


class HistoricalQuerySchema(DateRangeSchema):
    currency = fields.String(load_default=None)
    sampling = fields.String(
        load_default=Sampling.DAILY.value,
        validate=validate.OneOf([choice.value for choice in Sampling]),
    )


class FetchAndStoreSchema(DateRangeSchema):
    action = fields.String(
        load_default="update",
        validate=validate.OneOf(["update", "replace"]),
    )


class SeriesPointSchema(Schema):
    date = fields.String(required=True)
    buy = fields.Float(allow_none=True)
    sell = fields.Float(allow_none=True)


class HistoricalResponseSchema(Schema):
    """Series for one currency, or the two endpoint records when no currency is given."""

    currency = fields.String()
    start = fields.String(required=True, data_key="from")
    end = fields.String(required=True, data_key="to")
    sampling = fields.String()
    points = fields.List(fields.Nested(SeriesPointSchema))
    payload = fields.List(fields.Nested(DailyRatesSchema))


class ProgressSchema(Schema):
    stage = fields.String(required=True)
    message = fields.String(required=True)
    chunk_info = fields.Dict(allow_none=True)


class BackfillResponseSchema(Schema):
    report = fields.Dict(required=True)
    progress = fields.List(fields.Nested(ProgressSchema), required=True)


class FetchAndStoreResponseSchema(Schema):
    start = fields.String(required=True, data_key="from")
    end = fields.String(required=True, data_key="to")
    action = fields.String(required=True)
    stored = fields.Integer(required=True)
    failed = fields.List(fields.String(), required=True)
    message = fields.String(required=True)


class SyncResponseSchema(Schema):
    message = fields.String(required=True)
    outcome = fields.String(required=True)
    date = fields.String(required=True)
    detail = fields.String(allow_none=True)


class SyncThrottleSchema(Schema):
    message = fields.String(required=True)
    retry_after = fields.Integer(required=True)


def rates_payload(record: DailyRateRecord) -> dict[str, Any]:
    """Shape a record for ``DailyRatesSchema`` in registry order."""

    entries = []
    for currency in registry:
        pair = record.get(currency.code)
        if pair is None or pair.is_empty:
            continue
        entries.append(
            {
                "currency": {"iso3": currency.code, "name": currency.name, "unit": currency.unit},
                "buy": pair.buy,
                "sell": pair.sell,
            }
        )
    # Stored rows keep no publication metadata; fall back to the row timestamp.
    stamp = record.updated_at.isoformat() if record.updated_at else record.date.isoformat()
    return {
        "date": record.date.isoformat(),
        "published_on": record.published_on.isoformat() if record.published_on else stamp,
        "modified_on": record.modified_on.isoformat() if record.modified_on else stamp,
        "rates": entries,
    }
