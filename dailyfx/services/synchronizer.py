"""State machine that keeps today's record in the store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable

from dailyfx.logging import sync_log_extra
from dailyfx.providers.base import BaseRatePublisher, NotYetPublished, TransportError
from dailyfx.utils.datetime import DEFAULT_HOME_OFFSET_MINUTES, home_today, utc_now

from .ingestion import IngestionMerger
from .rate_store import DailyRateRecord, MergeMode, RateRecordStore

logger = logging.getLogger(__name__)


class SyncOutcome(str, Enum):
    ALREADY_PRESENT = "already_present"
    STORED = "stored"
    RETRYABLE = "retryable"
    CARRIED_FORWARD = "carried_forward"
    UNRECOVERABLE = "unrecoverable"
    TRANSPORT_ERROR = "transport_error"

    @property
    def is_failure(self) -> bool:
        return self in (SyncOutcome.UNRECOVERABLE, SyncOutcome.TRANSPORT_ERROR)


@dataclass(frozen=True)
class SyncResult:
    outcome: SyncOutcome
    target: date
    detail: str | None = None

    def as_dict(self) -> dict[str, str | None]:
        return {
            "outcome": self.outcome.value,
            "date": self.target.isoformat(),
            "detail": self.detail,
        }


class ScheduledSynchronizer:
    """Fetch today's publication, or carry yesterday forward on the final attempt.

    Retrying is left to the next scheduler tick; a single run makes at most one
    upstream call.
    """

    def __init__(
        self,
        store: RateRecordStore,
        publisher: BaseRatePublisher,
        merger: IngestionMerger,
        *,
        home_offset_minutes: int = DEFAULT_HOME_OFFSET_MINUTES,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._publisher = publisher
        self._merger = merger
        self._offset = home_offset_minutes
        self._clock = clock

    def today(self) -> date:
        return home_today(self._offset, now=self._clock())

    def run(self, final_attempt: bool = False) -> SyncResult:
        today = self.today()
        if self._store.get(today) is not None:
            return self._finish(SyncOutcome.ALREADY_PRESENT, today)

        try:
            publication = self._publisher.fetch_date(today)
        except NotYetPublished:
            return self._handle_unpublished(today, final_attempt)
        except TransportError as exc:
            return self._finish(SyncOutcome.TRANSPORT_ERROR, today, str(exc))

        result = self._merger.merge(publication, MergeMode.OVERWRITE)
        if today in result.failed:
            logger.error("Store write failed for %s; the next tick retries", today)
            return self._finish(SyncOutcome.RETRYABLE, today, "store write failed")
        if today in result.skipped or publication.for_date(today) is None:
            # Upstream answered but had nothing usable for today.
            return self._handle_unpublished(today, final_attempt)
        return self._finish(SyncOutcome.STORED, today)

    def _handle_unpublished(self, today: date, final_attempt: bool) -> SyncResult:
        if not final_attempt:
            return self._finish(SyncOutcome.RETRYABLE, today, "not yet published")

        yesterday = today - timedelta(days=1)
        previous = self._store.get(yesterday)
        if previous is None:
            return self._finish(
                SyncOutcome.UNRECOVERABLE,
                today,
                f"no publication for {today.isoformat()} and no record for {yesterday.isoformat()}",
            )

        carried = DailyRateRecord(date=today, rates=dict(previous.rates))
        result = self._store.upsert([carried], MergeMode.OVERWRITE)
        if today in result.failed:
            return self._finish(
                SyncOutcome.UNRECOVERABLE,
                today,
                f"carry-forward from {yesterday.isoformat()} could not be stored",
            )
        return self._finish(
            SyncOutcome.CARRIED_FORWARD, today, f"copied from {yesterday.isoformat()}"
        )

    @staticmethod
    def _finish(outcome: SyncOutcome, target: date, detail: str | None = None) -> SyncResult:
        extra = sync_log_extra(event="sync.run", outcome=outcome.value, target=target, detail=detail)
        if outcome is SyncOutcome.UNRECOVERABLE:
            logger.critical("Rates unrecoverable for %s: %s", target, detail, extra=extra)
        elif outcome is SyncOutcome.TRANSPORT_ERROR:
            logger.error("Rate sync transport failure for %s: %s", target, detail, extra=extra)
        else:
            logger.info("Rate sync for %s: %s", target, outcome.value, extra=extra)
        return SyncResult(outcome=outcome, target=target, detail=detail)
