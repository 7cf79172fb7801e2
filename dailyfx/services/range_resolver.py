"""Gap detection and chunked backfill of historical date ranges."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Callable, Iterable

from dailyfx.logging import sync_log_extra
from dailyfx.providers.base import BaseRatePublisher, NotYetPublished, TransportError
from dailyfx.providers.schemas import RatesPublication
from dailyfx.utils.datetime import iter_days, span_days

from .ingestion import IngestionMerger
from .rate_store import DailyRateRecord, MergeMode, RateRecordStore

logger = logging.getLogger(__name__)

STAGE_CHECKING = "checking"
STAGE_FETCHING = "fetching"
STAGE_STORING = "storing"
STAGE_LOADING = "loading"
STAGE_COMPLETE = "complete"
STAGE_ERROR = "error"


@dataclass(frozen=True)
class GapRange:
    """Contiguous inclusive run of dates with no stored record."""

    start: date
    end: date

    @property
    def days(self) -> int:
        return span_days(self.start, self.end)

    def as_dict(self) -> dict[str, str]:
        return {"from": self.start.isoformat(), "to": self.end.isoformat()}


@dataclass(frozen=True)
class ChunkInfo:
    current: int
    total: int
    from_date: date
    to_date: date

    def as_dict(self) -> dict[str, Any]:
        return {
            "current": self.current,
            "total": self.total,
            "from_date": self.from_date.isoformat(),
            "to_date": self.to_date.isoformat(),
        }


@dataclass(frozen=True)
class BackfillProgress:
    stage: str
    message: str
    chunk_info: ChunkInfo | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "message": self.message,
            "chunk_info": self.chunk_info.as_dict() if self.chunk_info else None,
        }


ProgressCallback = Callable[[BackfillProgress], None]


@dataclass
class BackfillReport:
    start: date
    end: date
    gaps: list[GapRange] = field(default_factory=list)
    chunks: int = 0
    stored: int = 0
    failed_chunks: list[GapRange] = field(default_factory=list)
    failed_dates: list[date] = field(default_factory=list)

    @property
    def missing_days(self) -> int:
        return sum(gap.days for gap in self.gaps)

    def as_dict(self) -> dict[str, Any]:
        return {
            "from": self.start.isoformat(),
            "to": self.end.isoformat(),
            "gaps": [gap.as_dict() for gap in self.gaps],
            "missing_days": self.missing_days,
            "chunks": self.chunks,
            "stored": self.stored,
            "failed_chunks": [chunk.as_dict() for chunk in self.failed_chunks],
            "failed_dates": [failed.isoformat() for failed in self.failed_dates],
        }


def find_missing_dates(start: date, end: date, existing: Iterable[date]) -> list[date]:
    present = set(existing)
    return [day for day in iter_days(start, end) if day not in present]


def group_gaps(missing: Iterable[date]) -> list[GapRange]:
    """Merge dates at most one day apart into contiguous ranges."""

    gaps: list[GapRange] = []
    for day in sorted(set(missing)):
        if gaps and (day - gaps[-1].end).days <= 1:
            gaps[-1] = GapRange(gaps[-1].start, day)
        else:
            gaps.append(GapRange(day, day))
    return gaps


def split_chunks(gap: GapRange, max_days: int) -> list[GapRange]:
    if max_days <= 0:
        raise ValueError("max_days must be positive")
    chunks = []
    cursor = gap.start
    while cursor <= gap.end:
        chunk_end = min(cursor + timedelta(days=max_days - 1), gap.end)
        chunks.append(GapRange(cursor, chunk_end))
        cursor = chunk_end + timedelta(days=1)
    return chunks


class RangeResolver:
    """Fill missing dates in a range from upstream, one chunk at a time."""

    def __init__(
        self,
        store: RateRecordStore,
        publisher: BaseRatePublisher,
        merger: IngestionMerger,
        *,
        max_chunk_days: int | None = None,
        chunk_delay_seconds: float = 0.5,
        chunk_retries: int = 1,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._publisher = publisher
        self._merger = merger
        limit = publisher.max_chunk_days
        self._max_chunk_days = min(max_chunk_days, limit) if max_chunk_days else limit
        self._delay = max(chunk_delay_seconds, 0.0)
        self._retries = max(chunk_retries, 0)
        self._sleep = sleep

    def ensure_range(
        self, start: date, end: date, on_progress: ProgressCallback | None = None
    ) -> BackfillReport:
        emit = on_progress or _ignore_progress
        report = self._backfill(start, end, emit)
        emit(BackfillProgress(STAGE_COMPLETE, _summary(report)))
        return report

    def resolve_range(
        self, start: date, end: date, on_progress: ProgressCallback | None = None
    ) -> list[DailyRateRecord]:
        emit = on_progress or _ignore_progress
        report = self._backfill(start, end, emit)
        emit(BackfillProgress(STAGE_LOADING, "Loading stored rates"))
        records = self._store.get_range(start, end)
        emit(BackfillProgress(STAGE_COMPLETE, _summary(report)))
        return records

    def _backfill(self, start: date, end: date, emit: ProgressCallback) -> BackfillReport:
        if start > end:
            raise ValueError("start must not be after end")

        emit(BackfillProgress(STAGE_CHECKING, "Checking stored dates"))
        missing = find_missing_dates(start, end, self._store.existing_dates(start, end))
        report = BackfillReport(start=start, end=end, gaps=group_gaps(missing))

        chunks = [chunk for gap in report.gaps for chunk in split_chunks(gap, self._max_chunk_days)]
        report.chunks = len(chunks)
        if chunks:
            logger.info(
                "Backfilling %d missing day(s) in %d chunk(s) for %s..%s",
                report.missing_days,
                len(chunks),
                start,
                end,
            )

        for index, chunk in enumerate(chunks, start=1):
            if index > 1 and self._delay:
                self._sleep(self._delay)
            info = ChunkInfo(index, len(chunks), chunk.start, chunk.end)
            emit(BackfillProgress(STAGE_FETCHING, f"Fetching {_label(chunk)}", info))
            self._process_chunk(chunk, info, report, emit)

        return report

    def _process_chunk(
        self,
        chunk: GapRange,
        info: ChunkInfo,
        report: BackfillReport,
        emit: ProgressCallback,
    ) -> None:
        try:
            publication = self._fetch_with_retry(chunk)
        except NotYetPublished:
            emit(BackfillProgress(STAGE_STORING, f"Nothing published for {_label(chunk)}", info))
            return
        except TransportError as exc:
            logger.error(
                "Skipping chunk %s after failed fetch: %s",
                _label(chunk),
                exc,
                extra=sync_log_extra(
                    event="backfill.chunk",
                    outcome="error",
                    from_date=chunk.start.isoformat(),
                    to_date=chunk.end.isoformat(),
                ),
            )
            report.failed_chunks.append(chunk)
            emit(BackfillProgress(STAGE_ERROR, f"Failed to fetch {_label(chunk)}: {exc}", info))
            return

        result = self._merger.merge(publication, MergeMode.FILL)
        report.stored += result.affected
        report.failed_dates.extend(result.failed)
        emit(
            BackfillProgress(
                STAGE_STORING, f"Stored {result.affected} day(s) for {_label(chunk)}", info
            )
        )

    def _fetch_with_retry(self, chunk: GapRange) -> RatesPublication:
        attempt = 0
        while True:
            try:
                return self._publisher.fetch_range(chunk.start, chunk.end)
            except TransportError as exc:
                if attempt >= self._retries:
                    raise
                attempt += 1
                logger.warning("Retrying chunk %s after error: %s", _label(chunk), exc)
                if self._delay:
                    self._sleep(self._delay)


def _label(chunk: GapRange) -> str:
    return f"{chunk.start.isoformat()}..{chunk.end.isoformat()}"


def _summary(report: BackfillReport) -> str:
    if not report.gaps:
        return "All dates already stored"
    message = f"Stored {report.stored} of {report.missing_days} missing day(s)"
    if report.failed_chunks:
        message += f"; {len(report.failed_chunks)} chunk(s) failed"
    return message


def _ignore_progress(_progress: BackfillProgress) -> None:
    return None
