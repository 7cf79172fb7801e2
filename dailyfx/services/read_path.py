"""Upstream-first reads with a bounded wait and store fallback."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import date, datetime, timedelta
from typing import Callable

from dailyfx.providers.base import BaseRatePublisher, NotYetPublished, ProviderError
from dailyfx.providers.schemas import RatesPublication
from dailyfx.utils.datetime import DEFAULT_HOME_OFFSET_MINUTES, home_today, utc_now

from .background import BackgroundTaskQueue
from .ingestion import IngestionMerger
from .rate_store import DailyRateRecord, MergeMode, RateRecordStore

logger = logging.getLogger(__name__)


class ReadPathStrategy:
    """Serve a single date from upstream when it answers in time, else from the store.

    A publication obtained inside the time window is also handed to the
    background queue for a ``fill`` merge. Late upstream results are dropped.
    """

    def __init__(
        self,
        store: RateRecordStore,
        publisher: BaseRatePublisher,
        merger: IngestionMerger,
        background: BackgroundTaskQueue | None,
        *,
        timeout_seconds: float = 10.0,
        home_offset_minutes: int = DEFAULT_HOME_OFFSET_MINUTES,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._publisher = publisher
        self._merger = merger
        self._background = background
        self._timeout = timeout_seconds
        self._offset = home_offset_minutes
        self._clock = clock
        self._race_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="dailyfx-read")

    def get_for_date(self, target: date) -> DailyRateRecord | None:
        publication = self._race_upstream(target)
        if publication is not None:
            records = [
                record for record in self._merger.to_records(publication) if record.date == target
            ]
            if records:
                self._ingest_later(publication)
                return records[0]

        return self._store.get(target)

    def get_latest(self) -> DailyRateRecord | None:
        today = home_today(self._offset, now=self._clock())
        for candidate in (today, today - timedelta(days=1)):
            record = self._store.get(candidate)
            if record is not None:
                return record
        return self._store.latest(on_or_before=today)

    def _race_upstream(self, target: date) -> RatesPublication | None:
        future: Future = self._race_pool.submit(self._publisher.fetch_date, target)
        try:
            return future.result(timeout=self._timeout)
        except FutureTimeout:
            future.cancel()
            logger.warning(
                "Upstream did not answer within %.1fs for %s; using stored rates",
                self._timeout,
                target,
            )
        except NotYetPublished:
            logger.info("Upstream has not published %s; using stored rates", target)
        except (ProviderError, ValueError) as exc:
            logger.warning("Upstream fetch for %s failed: %s; using stored rates", target, exc)
        return None

    def _ingest_later(self, publication: RatesPublication) -> None:
        if self._background is None:
            return
        self._background.submit(self._merger.merge, publication, MergeMode.FILL)

    def shutdown(self) -> None:
        self._race_pool.shutdown(wait=False, cancel_futures=True)
