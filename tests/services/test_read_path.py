from __future__ import annotations

import threading
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from dailyfx.providers.base import BaseRatePublisher, TransportError
from dailyfx.providers.mock import MockRatePublisher
from dailyfx.services.background import BackgroundTaskQueue
from dailyfx.services.ingestion import IngestionMerger
from dailyfx.services.rate_store import MergeMode
from dailyfx.services.read_path import ReadPathStrategy

pytestmark = pytest.mark.services

# 2024-06-02 12:00 NPT
NOW = datetime(2024, 6, 2, 6, 15, tzinfo=UTC)
TODAY = date(2024, 6, 2)


class RecordingQueue:
    def __init__(self):
        self.submitted = []

    def submit(self, func, *args, **kwargs):
        self.submitted.append((func, args, kwargs))


class BlockingPublisher(BaseRatePublisher):
    name = "blocking"

    def __init__(self):
        self.release = threading.Event()

    def fetch_range(self, start, end):
        self.release.wait(timeout=5)
        raise TransportError("released")


class FailingPublisher(BaseRatePublisher):
    name = "failing"

    def fetch_range(self, start, end):
        raise TransportError("connection refused")


@pytest.fixture()
def make_strategy(store):
    created = []

    def _make(publisher, background=None, timeout=1.0):
        strategy = ReadPathStrategy(
            store,
            publisher,
            IngestionMerger(store),
            background,
            timeout_seconds=timeout,
            clock=lambda: NOW,
        )
        created.append(strategy)
        return strategy

    yield _make
    for strategy in created:
        strategy.shutdown()


def test_upstream_answer_is_returned_and_queued_for_fill(make_strategy, store):
    queue = RecordingQueue()
    strategy = make_strategy(MockRatePublisher(), background=queue)

    record = strategy.get_for_date(TODAY)

    assert record.date == TODAY
    assert record.get("USD") is not None
    # The write happens later, never on the request path.
    assert store.get(TODAY) is None
    [(func, args, _)] = queue.submitted
    assert args[1] is MergeMode.FILL
    assert args[0].start == TODAY


def test_slow_upstream_falls_back_to_store(make_strategy, store, make_record):
    store.upsert([make_record(TODAY, {"USD": ("133.10", "133.70")})])
    publisher = BlockingPublisher()
    queue = RecordingQueue()
    strategy = make_strategy(publisher, background=queue, timeout=0.05)

    try:
        record = strategy.get_for_date(TODAY)
    finally:
        publisher.release.set()

    assert record.get("USD").buy == Decimal("133.10")
    assert queue.submitted == []


def test_upstream_failure_falls_back_to_store(make_strategy, store, make_record):
    store.upsert([make_record(TODAY, {"USD": ("133.10", "133.70")})])

    record = make_strategy(FailingPublisher()).get_for_date(TODAY)

    assert record.get("USD").sell == Decimal("133.70")


def test_unpublished_and_unstored_date_is_none(make_strategy):
    publisher = MockRatePublisher(unpublished={TODAY})

    assert make_strategy(publisher).get_for_date(TODAY) is None


def test_background_fill_is_applied_through_real_queue(app, make_strategy, store, make_record):
    store.upsert([make_record(TODAY, {"USD": ("1.00", None)})])
    queue = BackgroundTaskQueue(app, max_workers=1)
    captured = []
    original_submit = queue.submit

    def submit(func, *args, **kwargs):
        future = original_submit(func, *args, **kwargs)
        captured.append(future)
        return future

    queue.submit = submit
    try:
        make_strategy(MockRatePublisher(), background=queue).get_for_date(TODAY)
        for future in captured:
            future.result(timeout=5)
    finally:
        queue.shutdown()

    record = store.get(TODAY)
    assert record.get("USD").buy == Decimal("1.00")
    assert record.get("USD").sell is not None
    assert record.get("EUR") is not None


def test_latest_prefers_today_then_yesterday(make_strategy, store, make_record):
    strategy = make_strategy(MockRatePublisher())
    assert strategy.get_latest() is None

    store.upsert([make_record("2024-05-20", {"USD": ("1", "2")})])
    assert strategy.get_latest().date == date(2024, 5, 20)

    store.upsert([make_record("2024-06-01", {"USD": ("1", "2")})])
    assert strategy.get_latest().date == date(2024, 6, 1)

    store.upsert([make_record(TODAY, {"USD": ("1", "2")})])
    assert strategy.get_latest().date == TODAY


def test_latest_ignores_future_dated_records(make_strategy, store, make_record):
    store.upsert([make_record("2024-06-05", {"USD": ("1", "2")}), make_record("2024-05-31", {"USD": ("1", "2")})])

    assert make_strategy(MockRatePublisher()).get_latest().date == date(2024, 5, 31)
