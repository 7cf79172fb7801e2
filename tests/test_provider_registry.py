from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from dailyfx.providers import (
    BaseRatePublisher,
    MockRatePublisher,
    NotYetPublished,
    NrbRatePublisher,
    ProviderError,
)
from dailyfx.providers.registry import (
    get_publisher,
    init_publisher,
    list_publishers,
    register_publisher,
    reset_registry,
)


@pytest.fixture(autouse=True)
def _reset_publishers():
    reset_registry()
    yield
    reset_registry()


def test_known_publishers_are_registered():
    assert list_publishers() == ["mock", "nrb"]


def test_mock_publisher_quotes_every_supported_currency_in_upstream_units():
    publication = get_publisher("mock").fetch_range(date(2024, 6, 1), date(2024, 6, 3))

    assert [day.date for day in publication.days] == [
        date(2024, 6, 1),
        date(2024, 6, 2),
        date(2024, 6, 3),
    ]
    rates = {rate.code: rate for rate in publication.days[0].rates}
    assert len(rates) == 22
    assert rates["INR"].unit == 100
    assert rates["USD"].unit == 1
    assert rates["INR"].sell > rates["INR"].buy > Decimal("0")


def test_mock_publisher_skips_unpublished_dates():
    publisher = MockRatePublisher(unpublished=[date(2024, 6, 2)])

    publication = publisher.fetch_range(date(2024, 6, 1), date(2024, 6, 3))

    assert publication.for_date(date(2024, 6, 2)) is None
    with pytest.raises(NotYetPublished):
        publisher.fetch_date(date(2024, 6, 2))
    assert publisher.calls[-1] == (date(2024, 6, 2), date(2024, 6, 2))


def test_register_custom_publisher():
    class AlternatePublisher(MockRatePublisher):
        name = "alternate"

    register_publisher("Alternate", AlternatePublisher)

    assert isinstance(get_publisher("alternate"), AlternatePublisher)


def test_unknown_publisher_raises():
    with pytest.raises(ProviderError, match="Unknown upstream"):
        get_publisher("does-not-exist")


def test_nrb_factory_reads_app_config(app):
    with app.app_context():
        publisher = get_publisher("nrb")

    assert isinstance(publisher, NrbRatePublisher)
    assert publisher.max_chunk_days == app.config["UPSTREAM_MAX_CHUNK_DAYS"]


def test_init_publisher_attaches_configured_publisher(app):
    publisher = init_publisher(app)

    assert isinstance(publisher, BaseRatePublisher)
    assert publisher.name == "mock"
    assert app.extensions["rate_publisher"] is publisher
