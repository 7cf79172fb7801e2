"""Fire-and-forget task execution for writes the caller does not wait on."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from flask import Flask

from dailyfx.database import get_session

logger = logging.getLogger(__name__)


class BackgroundTaskQueue:
    """Thread pool that runs each task inside its own application context.

    Failures are logged and never reach the submitter.
    """

    def __init__(self, app: Flask, max_workers: int = 2) -> None:
        self._app = app
        self._executor = ThreadPoolExecutor(
            max_workers=max(max_workers, 1), thread_name_prefix="dailyfx-bg"
        )

    def submit(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        return self._executor.submit(self._run, func, args, kwargs)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _run(self, func: Callable[..., Any], args: tuple, kwargs: dict) -> Any:
        with self._app.app_context():
            try:
                return func(*args, **kwargs)
            except Exception:
                logger.exception("Background task %s failed", getattr(func, "__name__", func))
                return None
            finally:
                get_session().remove()
