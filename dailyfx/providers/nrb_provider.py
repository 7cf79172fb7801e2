"""Nepal Rastra Bank publisher implementation."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date, datetime
from time import perf_counter
from typing import Any

from dailyfx.logging import upstream_log_extra
from dailyfx.providers.base import BaseRatePublisher, NotYetPublished, TransportError
from dailyfx.providers.schemas import DayPublication, PublishedRate, RatesPublication
from dailyfx.utils.datetime import parse_iso_date

from .nrb_client import NrbAPIError, NrbClient, NrbClientConfig

logger = logging.getLogger(__name__)

MAX_PAGES = 50


class NrbRatePublisher(BaseRatePublisher):
    """Publisher that fetches daily buy/sell quotes from the NRB forex API."""

    name = "nrb"

    def __init__(self, client: NrbClient, max_chunk_days: int = 90) -> None:
        self._client = client
        self.max_chunk_days = max_chunk_days

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> NrbRatePublisher:
        client_config = NrbClientConfig(
            base_url=str(config.get("NRB_API_BASE_URL") or "https://www.nrb.org.np/api/forex/v1"),
            timeout=float(config.get("REQUEST_TIMEOUT_SECONDS", 10)),
            per_page=int(config.get("NRB_API_PER_PAGE", 100)),
        )
        max_chunk_days = int(config.get("UPSTREAM_MAX_CHUNK_DAYS", 90))
        return cls(NrbClient(client_config), max_chunk_days=max_chunk_days)

    def fetch_range(self, start: date, end: date) -> RatesPublication:
        self._check_range(start, end)

        started = perf_counter()
        days: list[DayPublication] = []
        page = 1
        while page <= MAX_PAGES:
            params = {
                "from": start.isoformat(),
                "to": end.isoformat(),
                "page": page,
                "per_page": self._client.per_page,
            }
            try:
                payload = self._client.get("/rates", params=params)
            except NrbAPIError as exc:
                if exc.not_found and not days:
                    self._log_outcome(start, end, "not_published", started)
                    raise NotYetPublished(start, end) from exc
                if exc.not_found:
                    break
                self._log_outcome(start, end, "error", started, error=str(exc))
                raise TransportError(str(exc), status_code=exc.status_code) from exc

            data = payload["data"]
            entries = data["payload"]
            days.extend(self._parse_days(entries))

            total_pages = self._total_pages(data.get("pagination") or payload.get("pagination"))
            if not entries or page >= total_pages:
                break
            page += 1

        publication = RatesPublication(source=self.name, start=start, end=end, days=days)
        if publication.is_empty:
            self._log_outcome(start, end, "not_published", started)
            raise NotYetPublished(start, end)

        self._log_outcome(start, end, "success", started, days=len(publication.days))
        return publication

    def _parse_days(self, entries: list[Any]) -> list[DayPublication]:
        parsed: list[DayPublication] = []
        for entry in entries:
            if not isinstance(entry, dict):
                logger.warning("Skipping malformed NRB payload entry: %r", entry)
                continue
            try:
                day = parse_iso_date(entry.get("date") or "")
            except ValueError:
                logger.warning("Skipping NRB entry with invalid date %r", entry.get("date"))
                continue

            rates: list[PublishedRate] = []
            for raw_rate in entry.get("rates") or []:
                rate = self._parse_rate(raw_rate)
                if rate is not None:
                    rates.append(rate)

            parsed.append(
                DayPublication(
                    date=day,
                    rates=rates,
                    published_on=self._parse_timestamp(entry.get("published_on")),
                    modified_on=self._parse_timestamp(entry.get("modified_on")),
                )
            )
        return parsed

    @staticmethod
    def _parse_rate(raw_rate: Any) -> PublishedRate | None:
        if not isinstance(raw_rate, dict):
            return None
        currency = raw_rate.get("currency") or {}
        code = currency.get("iso3") if isinstance(currency, dict) else None
        if not code or not str(code).strip():
            return None
        try:
            return PublishedRate(
                code=str(code),
                buy=raw_rate.get("buy"),
                sell=raw_rate.get("sell"),
                unit=currency.get("unit") or 1,
                name=currency.get("name"),
            )
        except ValueError:
            return None

    @staticmethod
    def _parse_timestamp(value: Any) -> datetime | None:
        if not value:
            return None
        try:
            return datetime.fromisoformat(str(value))
        except ValueError:
            return None

    @staticmethod
    def _total_pages(pagination: Any) -> int:
        if not isinstance(pagination, dict):
            return 1
        try:
            return max(int(pagination.get("total_page") or pagination.get("pages") or 1), 1)
        except (TypeError, ValueError):
            return 1

    def _log_outcome(
        self,
        start: date,
        end: date,
        status: str,
        started: float,
        *,
        error: str | None = None,
        days: int | None = None,
    ) -> None:
        extra = upstream_log_extra(
            upstream=self.name,
            event="upstream.fetch",
            status=status,
            start=start,
            end=end,
            duration_ms=(perf_counter() - started) * 1000,
            error=error,
        )
        if days is not None:
            extra["days"] = days
        if status == "error":
            logger.warning("Upstream fetch failed: %s", error, extra=extra)
        else:
            logger.info("Upstream fetch %s", status, extra=extra)
