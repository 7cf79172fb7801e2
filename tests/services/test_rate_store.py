from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from dailyfx.database import get_engine
from dailyfx.models import DailyRate
from dailyfx.services.rate_store import MergeMode, RateRecordStore, StoreError

pytestmark = pytest.mark.services


def test_get_returns_none_for_unknown_date(store):
    assert store.get(date(2024, 1, 1)) is None


def test_upsert_creates_record(store, make_record):
    result = store.upsert([make_record("2024-01-01", {"USD": ("133.10", "133.70")})])

    assert result.stored == [date(2024, 1, 1)]
    assert result.failed == []
    record = store.get(date(2024, 1, 1))
    assert record.get("usd").buy == Decimal("133.10")
    assert record.get("USD").sell == Decimal("133.70")
    assert record.updated_at is not None


def test_fill_never_replaces_present_values(store, make_record):
    store.upsert([make_record("2024-01-01", {"USD": ("133.10", None)})])

    result = store.upsert(
        [make_record("2024-01-01", {"USD": ("999.00", "133.70"), "EUR": ("144.00", "144.60")})],
        MergeMode.FILL,
    )

    record = store.get(date(2024, 1, 1))
    assert result.stored == [date(2024, 1, 1)]
    assert record.get("USD").buy == Decimal("133.10")
    assert record.get("USD").sell == Decimal("133.70")
    assert record.get("EUR").buy == Decimal("144.00")


def test_overwrite_replaces_values_but_never_with_null(store, make_record):
    store.upsert([make_record("2024-01-01", {"USD": ("133.10", "133.70")})])

    store.upsert([make_record("2024-01-01", {"USD": ("134.00", None)})], MergeMode.OVERWRITE)

    pair = store.get(date(2024, 1, 1)).get("USD")
    assert pair.buy == Decimal("134.00")
    assert pair.sell == Decimal("133.70")


def test_reapplying_identical_batch_changes_nothing(store, make_record):
    batch = [
        make_record("2024-01-01", {"USD": ("133.10", "133.70")}),
        make_record("2024-01-02", {"INR": ("1.6000", "1.6015")}),
    ]
    store.upsert(batch, MergeMode.FILL)
    before = store.get_range(date(2024, 1, 1), date(2024, 1, 2))

    for mode in (MergeMode.FILL, MergeMode.OVERWRITE):
        result = store.upsert(batch, mode)
        assert result.stored == []

    assert store.get_range(date(2024, 1, 1), date(2024, 1, 2)) == before


def test_unsupported_currencies_are_ignored(store, make_record):
    store.upsert([make_record("2024-01-01", {"XAU": ("1", "1"), "USD": ("133.10", "133.70")})])

    assert set(store.get(date(2024, 1, 1)).rates) == {"USD"}


def test_range_reads_are_ascending(store, make_record):
    store.upsert(
        [
            make_record("2024-01-05", {"USD": ("1", "2")}),
            make_record("2024-01-01", {"USD": ("1", "2")}),
            make_record("2024-01-03", {"USD": ("1", "2")}),
        ]
    )

    records = store.get_range(date(2024, 1, 1), date(2024, 1, 4))

    assert [record.date for record in records] == [date(2024, 1, 1), date(2024, 1, 3)]
    assert store.existing_dates(date(2024, 1, 1), date(2024, 1, 31)) == {
        date(2024, 1, 1),
        date(2024, 1, 3),
        date(2024, 1, 5),
    }


def test_latest_respects_upper_bound(store, make_record):
    assert store.latest() is None
    store.upsert(
        [make_record("2024-01-01", {"USD": ("1", "2")}), make_record("2024-01-09", {"USD": ("1", "2")})]
    )

    assert store.latest().date == date(2024, 1, 9)
    assert store.latest(on_or_before=date(2024, 1, 8)).date == date(2024, 1, 1)
    assert store.latest(on_or_before=date(2023, 12, 31)) is None


def test_failed_date_is_rolled_back_and_reported(store, make_record):
    original_apply = RateRecordStore._apply

    def flaky_apply(session, record, mode):
        if record.date == date(2024, 1, 2):
            raise OperationalError("UPDATE daily_rates", {}, Exception("disk I/O error"))
        return original_apply(session, record, mode)

    batch = [
        make_record("2024-01-01", {"USD": ("1", "2")}),
        make_record("2024-01-02", {"USD": ("1", "2")}),
        make_record("2024-01-03", {"USD": ("1", "2")}),
    ]
    with patch.object(RateRecordStore, "_apply", staticmethod(flaky_apply)):
        result = store.upsert(batch)

    assert result.stored == [date(2024, 1, 1), date(2024, 1, 3)]
    assert result.failed == [date(2024, 1, 2)]
    assert store.existing_dates(date(2024, 1, 1), date(2024, 1, 3)) == {
        date(2024, 1, 1),
        date(2024, 1, 3),
    }


def test_commit_failure_rolls_back_whole_batch(store, make_record):
    session = store._session_factory()
    with patch.object(
        type(session), "commit", side_effect=OperationalError("COMMIT", {}, Exception("locked"))
    ):
        with pytest.raises(StoreError):
            store.upsert([make_record("2024-01-01", {"USD": ("1", "2")})])

    assert store.get(date(2024, 1, 1)) is None


def test_date_created_by_concurrent_writer_is_merged_on_retry(store, make_record):
    original_apply = RateRecordStore._apply
    attempts = []

    def racing_apply(session, record, mode):
        attempts.append(record.date)
        if len(attempts) == 1:
            # Another writer creates the row and commits first.
            with Session(get_engine()) as rival:
                rival.add(
                    DailyRate(
                        date=record.date,
                        USD_buy=Decimal("133.10"),
                        USD_sell=Decimal("133.70"),
                        updated_at=datetime(2024, 6, 10, tzinfo=UTC),
                    )
                )
                rival.commit()
            raise IntegrityError("INSERT INTO daily_rates", {}, Exception("UNIQUE constraint failed"))
        return original_apply(session, record, mode)

    with patch.object(RateRecordStore, "_apply", staticmethod(racing_apply)):
        result = store.upsert([make_record("2024-06-10", {"EUR": ("144.00", "144.60")})], MergeMode.FILL)

    assert attempts == [date(2024, 6, 10), date(2024, 6, 10)]
    assert result.stored == [date(2024, 6, 10)]
    assert result.failed == []
    record = store.get(date(2024, 6, 10))
    assert set(record.rates) == {"USD", "EUR"}
    assert record.get("USD").buy == Decimal("133.10")
    assert record.get("EUR").sell == Decimal("144.60")
