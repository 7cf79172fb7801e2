"""Construction of the rate services and their attachment to the Flask app."""

from __future__ import annotations

import atexit
from dataclasses import dataclass

from flask import Flask, current_app

from dailyfx.providers.base import BaseRatePublisher
from dailyfx.providers.registry import init_publisher

from .background import BackgroundTaskQueue
from .ingestion import IngestionMerger
from .range_resolver import RangeResolver
from .rate_store import RateRecordStore
from .read_path import ReadPathStrategy
from .series import SeriesShaper
from .synchronizer import ScheduledSynchronizer

SERVICES_EXT_KEY = "rate_services"


@dataclass
class RateServices:
    store: RateRecordStore
    publisher: BaseRatePublisher
    merger: IngestionMerger
    synchronizer: ScheduledSynchronizer
    resolver: RangeResolver
    read_path: ReadPathStrategy
    series: SeriesShaper
    background: BackgroundTaskQueue

    def shutdown(self) -> None:
        """Stop the read-path race pool and the background queue."""

        self.read_path.shutdown()
        self.background.shutdown(wait=False)


def create_rate_services(app: Flask, publisher: BaseRatePublisher) -> RateServices:
    config = app.config
    offset = int(config.get("HOME_UTC_OFFSET_MINUTES", 345))

    store = RateRecordStore()
    merger = IngestionMerger(store, app.extensions.get("currency_registry"))
    background = BackgroundTaskQueue(app, max_workers=int(config.get("BACKGROUND_WORKERS", 2)))

    return RateServices(
        store=store,
        publisher=publisher,
        merger=merger,
        synchronizer=ScheduledSynchronizer(store, publisher, merger, home_offset_minutes=offset),
        resolver=RangeResolver(
            store,
            publisher,
            merger,
            max_chunk_days=int(config.get("UPSTREAM_MAX_CHUNK_DAYS", 90)),
            chunk_delay_seconds=float(config.get("BACKFILL_CHUNK_DELAY_SECONDS", 0.5)),
            chunk_retries=int(config.get("BACKFILL_CHUNK_RETRIES", 1)),
        ),
        read_path=ReadPathStrategy(
            store,
            publisher,
            merger,
            background,
            timeout_seconds=float(config.get("READ_PATH_TIMEOUT_SECONDS", 10)),
            home_offset_minutes=offset,
        ),
        series=SeriesShaper(store),
        background=background,
    )


def init_rate_services(app: Flask) -> RateServices:
    """Build services around the configured publisher and store them on the app."""

    publisher = init_publisher(app)
    services = create_rate_services(app, publisher)
    app.extensions[SERVICES_EXT_KEY] = services
    atexit.register(services.shutdown)
    return services


def get_rate_services(app: Flask | None = None) -> RateServices:
    target = app or current_app
    services = target.extensions.get(SERVICES_EXT_KEY)
    if services is None:
        raise RuntimeError("Rate services are not initialised. Call init_rate_services first.")
    return services
