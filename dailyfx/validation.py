"""Validation helpers for request payloads."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from dailyfx.errors import ValidationError
from dailyfx.utils.currencies import registry
from dailyfx.utils.datetime import parse_iso_date, span_days


def _preview_codes(codes: Sequence[str], max_items: int = 10) -> str:
    subset = sorted(codes)[:max_items]
    preview = ", ".join(subset)
    if len(codes) > max_items:
        preview += ", ..."
    return preview


def validate_currency_code(value: str | None, *, field: str = "currency") -> str:
    """Ensure the provided currency code is one of the published currencies."""

    if value is None or not str(value).strip():
        raise ValidationError(f"'{field}' is required.", payload={"field": field})

    normalized = str(value).strip().upper()
    if not normalized.isascii() or not registry.is_allowed(normalized):
        raise ValidationError(
            f"Unsupported currency code '{normalized}'. Allowed codes: {_preview_codes(registry.codes)}.",
            payload={"field": field, "code": normalized},
        )
    return normalized


def validate_date(value: str | date | None, *, field: str) -> date:
    if value is None or not str(value).strip():
        raise ValidationError(f"'{field}' is required.", payload={"field": field})
    try:
        return parse_iso_date(value)
    except ValueError as exc:
        raise ValidationError(
            f"Invalid date '{value}'. Expected YYYY-MM-DD.",
            status_code=400,
            payload={"field": field},
        ) from exc


def validate_date_range(
    start: str | date | None,
    end: str | date | None,
    *,
    max_days: int | None = None,
) -> tuple[date, date]:
    start_date = validate_date(start, field="from")
    end_date = validate_date(end, field="to")
    if start_date > end_date:
        raise ValidationError("'from' must not be after 'to'.", status_code=400, payload={"field": "from"})
    if max_days is not None and span_days(start_date, end_date) > max_days:
        raise ValidationError(
            f"Date range may span at most {max_days} days.",
            status_code=400,
            payload={"field": "to"},
        )
    return start_date, end_date
