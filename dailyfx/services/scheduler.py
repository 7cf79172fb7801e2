"""Scheduler setup for the periodic rate synchronizer."""

from __future__ import annotations

import atexit
import logging
from datetime import UTC, datetime
from typing import Any

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from flask import Flask

from dailyfx.providers.base import ProviderError

from .components import get_rate_services
from .rate_store import StoreError
from .synchronizer import SyncResult

logger = logging.getLogger(__name__)

SCHEDULER_EXT_KEY = "apscheduler"
SYNC_STATE_KEY = "rates_sync_state"


def ensure_sync_state(app: Flask) -> dict[str, Any]:
    """Ensure the sync state dict exists on app extensions."""

    state = app.extensions.setdefault(SYNC_STATE_KEY, {})
    if not isinstance(state, dict):
        state = {}
        app.extensions[SYNC_STATE_KEY] = state
    return state


def run_scheduled_sync(app: Flask, final_attempt: bool = False) -> SyncResult | None:
    """Entry point for the cron jobs; runs ``sync_now`` in a fresh app context."""

    with app.app_context():
        return sync_now(app, final_attempt=final_attempt)


def sync_now(app: Flask, final_attempt: bool = False) -> SyncResult | None:
    """Run one synchronizer tick and record its outcome in the sync state."""

    state = ensure_sync_state(app)
    now = datetime.now(UTC)
    state["last_run"] = now
    synchronizer = get_rate_services(app).synchronizer
    try:
        result = synchronizer.run(final_attempt=final_attempt)
    except (StoreError, ProviderError) as exc:
        state["last_outcome"] = "error"
        state["last_failure"] = now
        logger.error("Rate sync failed: %s", exc)
        return None

    state["last_outcome"] = result.outcome.value
    state["last_target"] = result.target
    if result.outcome.is_failure:
        state["last_failure"] = now
    else:
        state["last_success"] = now
    return result


def init_scheduler(app: Flask) -> BackgroundScheduler | None:
    """Start APScheduler with the regular and final sync jobs if enabled."""

    ensure_sync_state(app)

    if not app.config.get("SCHEDULER_ENABLED", True):
        logger.info("Scheduler disabled via configuration.")
        return None

    if app.extensions.get(SCHEDULER_EXT_KEY):
        return app.extensions[SCHEDULER_EXT_KEY]

    scheduler = BackgroundScheduler(timezone=app.config.get("SCHEDULER_TIMEZONE", "UTC"))
    regular_cron = app.config.get("RATES_SYNC_CRON", "*/30 * * * *")
    final_cron = app.config.get("RATES_SYNC_FINAL_CRON", "15 23 * * *")
    scheduler.add_job(
        run_scheduled_sync,
        trigger=CronTrigger.from_crontab(regular_cron),
        args=[app],
        id="sync_rates",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        run_scheduled_sync,
        trigger=CronTrigger.from_crontab(final_cron),
        args=[app],
        kwargs={"final_attempt": True},
        id="sync_rates_final",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()

    app.extensions[SCHEDULER_EXT_KEY] = scheduler
    atexit.register(shutdown_scheduler, app)
    logger.info("APScheduler started with crons '%s' and final '%s'", regular_cron, final_cron)
    return scheduler


def shutdown_scheduler(app: Flask) -> None:
    scheduler = app.extensions.pop(SCHEDULER_EXT_KEY, None)
    if scheduler is not None and getattr(scheduler, "running", False):
        scheduler.shutdown(wait=False)
