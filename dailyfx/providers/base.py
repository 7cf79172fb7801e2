"""Abstract interface and failure types for the upstream rate publisher."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date

from .schemas import RatesPublication


class ProviderError(Exception):
    """Raised when an upstream provider cannot fulfill a request."""


class TransportError(ProviderError):
    """Upstream unreachable, erroring, or returning a malformed response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotYetPublished(Exception):
    """Upstream has nothing for the requested dates yet.

    This is an expected business outcome (before publication time, weekends,
    holidays) and deliberately not a ``ProviderError``.
    """

    def __init__(self, start: date, end: date) -> None:
        super().__init__(f"No rates published for {start.isoformat()}..{end.isoformat()}")
        self.start = start
        self.end = end


class BaseRatePublisher(ABC):
    """Defines the interface all upstream rate publishers must implement."""

    name: str
    max_chunk_days: int = 90

    @abstractmethod
    def fetch_range(self, start: date, end: date) -> RatesPublication:
        """Fetch publications for ``start``..``end`` inclusive.

        Raises:
            NotYetPublished: nothing has been published for the range.
            TransportError: the upstream could not be reached or parsed.
            ValueError: the range is inverted or wider than ``max_chunk_days``.
        """

    def fetch_date(self, target: date) -> RatesPublication:
        return self.fetch_range(target, target)

    def _check_range(self, start: date, end: date) -> None:
        if start > end:
            raise ValueError("start must not be after end")
        span = (end - start).days + 1
        if span > self.max_chunk_days:
            raise ValueError(
                f"Requested {span} days but upstream accepts at most {self.max_chunk_days} per request"
            )
