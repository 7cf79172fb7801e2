"""Shared pytest fixtures."""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterator
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import delete

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from dailyfx import create_app  # noqa: E402
from dailyfx.database import SessionLocal, get_engine  # noqa: E402
from dailyfx.models import DailyRate  # noqa: E402
from dailyfx.services.components import get_rate_services  # noqa: E402
from dailyfx.services.rate_store import DailyRateRecord, RatePair  # noqa: E402
from dailyfx.services.scheduler import SYNC_STATE_KEY  # noqa: E402


@pytest.fixture(scope="session")
def app(tmp_path_factory: pytest.TempPathFactory) -> Iterator:
    """Session-wide Flask application on a migrated temporary SQLite file."""

    db_path = tmp_path_factory.mktemp("db") / "test.db"
    database_url = f"sqlite:///{db_path}"

    alembic_cfg = Config(str(ROOT_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(alembic_cfg, "head")

    flask_app = create_app("testing", overrides={"SQLALCHEMY_DATABASE_URI": database_url})

    yield flask_app

    get_rate_services(flask_app).background.shutdown(wait=True)
    SessionLocal.remove()
    get_engine().dispose()


@pytest.fixture(autouse=True)
def _clean_state(request) -> Iterator[None]:
    """Empty the rates table and sync state after every test that used the app."""

    yield
    if "app" not in request.fixturenames:
        return
    flask_app = request.getfixturevalue("app")
    session = SessionLocal()
    session.execute(delete(DailyRate))
    session.commit()
    SessionLocal.remove()
    flask_app.extensions[SYNC_STATE_KEY] = {}


@pytest.fixture()
def client(app):
    """Provide a Flask test client."""

    with app.test_client() as client:
        yield client


@pytest.fixture()
def services(app):
    with app.app_context():
        yield get_rate_services(app)


@pytest.fixture()
def store(services):
    return services.store


@pytest.fixture()
def make_record() -> Callable[..., DailyRateRecord]:
    """Build a record from ``{"USD": ("133.1", "133.7")}`` style values."""

    def _make(day: date | str, values: dict[str, tuple[str | None, str | None]]) -> DailyRateRecord:
        target = date.fromisoformat(day) if isinstance(day, str) else day
        rates = {
            code: RatePair(
                buy=Decimal(buy) if buy is not None else None,
                sell=Decimal(sell) if sell is not None else None,
            )
            for code, (buy, sell) in values.items()
        }
        return DailyRateRecord(date=target, rates=rates)

    return _make
