from __future__ import annotations

from datetime import date, timedelta

import pytest

from dailyfx.providers.base import TransportError
from dailyfx.providers.mock import MockRatePublisher
from dailyfx.services.ingestion import IngestionMerger
from dailyfx.services.range_resolver import (
    STAGE_CHECKING,
    STAGE_COMPLETE,
    STAGE_ERROR,
    STAGE_FETCHING,
    STAGE_LOADING,
    STAGE_STORING,
    GapRange,
    RangeResolver,
    group_gaps,
    split_chunks,
)

pytestmark = pytest.mark.services


def d(day: int, month: int = 1, year: int = 2024) -> date:
    return date(year, month, day)


class FlakyPublisher(MockRatePublisher):
    """Mock publisher that raises TransportError for selected chunk starts."""

    def __init__(self, failures: dict[date, int], **kwargs):
        super().__init__(**kwargs)
        self.failures = dict(failures)

    def fetch_range(self, start, end):
        remaining = self.failures.get(start, 0)
        if remaining:
            self.failures[start] = remaining - 1
            self.calls.append((start, end))
            raise TransportError("upstream timeout")
        return super().fetch_range(start, end)


def make_resolver(store, publisher, **kwargs) -> RangeResolver:
    kwargs.setdefault("chunk_delay_seconds", 0)
    return RangeResolver(store, publisher, IngestionMerger(store), **kwargs)


def test_group_gaps_merges_adjacent_dates():
    missing = [d(7), d(3), d(4), d(6), d(10)]

    assert group_gaps(missing) == [GapRange(d(3), d(4)), GapRange(d(6), d(7)), GapRange(d(10), d(10))]
    assert group_gaps([]) == []


def test_split_chunks_respects_limit():
    gap = GapRange(d(1), d(1) + timedelta(days=199))

    chunks = split_chunks(gap, 90)

    assert [chunk.days for chunk in chunks] == [90, 90, 20]
    assert chunks[0].start == gap.start
    assert chunks[-1].end == gap.end
    for previous, current in zip(chunks, chunks[1:]):
        assert current.start == previous.end + timedelta(days=1)


def test_gaps_are_detected_against_stored_dates(store, make_record):
    store.upsert([make_record(day, {"USD": ("1", "2")}) for day in (d(1), d(2), d(5))])
    publisher = MockRatePublisher()

    report = make_resolver(store, publisher).ensure_range(d(1), d(7))

    assert report.gaps == [GapRange(d(3), d(4)), GapRange(d(6), d(7))]
    assert publisher.calls == [(d(3), d(4)), (d(6), d(7))]
    assert report.stored == 4
    assert store.existing_dates(d(1), d(7)) == {d(i) for i in range(1, 8)}


def test_fill_mode_leaves_existing_records_untouched(store, make_record):
    store.upsert([make_record(d(2), {"USD": ("1.11", "2.22")})])

    make_resolver(store, MockRatePublisher()).ensure_range(d(1), d(3))

    assert store.get(d(2)).rates == make_record(d(2), {"USD": ("1.11", "2.22")}).rates


def test_nothing_missing_means_no_upstream_calls(store, make_record):
    store.upsert([make_record(d(1), {"USD": ("1", "2")})])
    publisher = MockRatePublisher()
    events = []

    report = make_resolver(store, publisher).ensure_range(d(1), d(1), on_progress=events.append)

    assert publisher.calls == []
    assert report.chunks == 0
    assert [event.stage for event in events] == [STAGE_CHECKING, STAGE_COMPLETE]


def test_chunks_are_fetched_in_ascending_order_with_progress(store):
    publisher = MockRatePublisher()
    events = []
    sleeps = []

    report = make_resolver(
        store, publisher, max_chunk_days=3, chunk_delay_seconds=0.5, sleep=sleeps.append
    ).ensure_range(d(1), d(7), on_progress=events.append)

    assert publisher.calls == [(d(1), d(3)), (d(4), d(6)), (d(7), d(7))]
    assert report.chunks == 3
    assert sleeps == [0.5, 0.5]
    stages = [event.stage for event in events]
    assert stages[0] == STAGE_CHECKING
    assert stages[-1] == STAGE_COMPLETE
    assert stages.count(STAGE_FETCHING) == 3
    assert stages.count(STAGE_STORING) == 3
    last_chunk = [event for event in events if event.stage == STAGE_STORING][-1].chunk_info
    assert last_chunk.as_dict() == {
        "current": 3,
        "total": 3,
        "from_date": "2024-01-07",
        "to_date": "2024-01-07",
    }


def test_transport_error_is_retried_once(store):
    publisher = FlakyPublisher({d(1): 1})

    report = make_resolver(store, publisher).ensure_range(d(1), d(2))

    assert publisher.calls == [(d(1), d(2)), (d(1), d(2))]
    assert report.failed_chunks == []
    assert report.stored == 2


def test_failed_chunk_is_skipped_and_later_chunks_continue(store):
    publisher = FlakyPublisher({d(1): 5})
    events = []

    report = make_resolver(store, publisher, max_chunk_days=2).ensure_range(
        d(1), d(4), on_progress=events.append
    )

    assert report.failed_chunks == [GapRange(d(1), d(2))]
    assert store.existing_dates(d(1), d(4)) == {d(3), d(4)}
    assert len([call for call in publisher.calls if call[0] == d(1)]) == 2
    errors = [event for event in events if event.stage == STAGE_ERROR]
    assert len(errors) == 1
    assert errors[0].chunk_info.current == 1


def test_not_yet_published_chunk_moves_on(store):
    holidays = {d(1), d(2)}
    publisher = MockRatePublisher(unpublished=holidays)

    report = make_resolver(store, publisher, max_chunk_days=2).ensure_range(d(1), d(4))

    assert report.failed_chunks == []
    assert store.existing_dates(d(1), d(4)) == {d(3), d(4)}


def test_missing_dates_are_never_invented(store):
    publisher = MockRatePublisher(unpublished={date(2024, 6, 2)})

    records = make_resolver(store, publisher).resolve_range(date(2024, 6, 1), date(2024, 6, 3))

    assert [record.date for record in records] == [date(2024, 6, 1), date(2024, 6, 3)]
    assert store.get(date(2024, 6, 2)) is None


def test_resolve_range_reports_loading_before_complete(store):
    events = []

    make_resolver(store, MockRatePublisher()).resolve_range(d(1), d(1), on_progress=events.append)

    assert [event.stage for event in events][-2:] == [STAGE_LOADING, STAGE_COMPLETE]


def test_inverted_range_is_rejected(store):
    with pytest.raises(ValueError):
        make_resolver(store, MockRatePublisher()).ensure_range(d(5), d(1))


def test_end_to_end_holiday_scenario(store):
    """Backfill 2024-06-01..03 where 06-02 is a holiday, then re-run."""
    publisher = MockRatePublisher(unpublished={date(2024, 6, 2)})
    resolver = make_resolver(store, publisher)

    first = resolver.ensure_range(date(2024, 6, 1), date(2024, 6, 3))
    second = resolver.ensure_range(date(2024, 6, 1), date(2024, 6, 3))

    assert first.stored == 2
    assert store.existing_dates(date(2024, 6, 1), date(2024, 6, 3)) == {
        date(2024, 6, 1),
        date(2024, 6, 3),
    }
    # The holiday stays a gap and is retried, but nothing else is refetched.
    assert second.gaps == [GapRange(date(2024, 6, 2), date(2024, 6, 2))]
    assert second.stored == 0
    assert publisher.calls[-1] == (date(2024, 6, 2), date(2024, 6, 2))
