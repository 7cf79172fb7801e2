"""Registry and factory for upstream rate publishers."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List

from .base import BaseRatePublisher, ProviderError

PublisherFactory = Callable[[], BaseRatePublisher]

_PUBLISHER_FACTORIES: Dict[str, PublisherFactory] = {}


def _default_factories() -> Iterable[tuple[str, PublisherFactory]]:
    from flask import current_app

    from .mock import MockRatePublisher
    from .nrb_provider import NrbRatePublisher

    def nrb_factory() -> NrbRatePublisher:
        return NrbRatePublisher.from_config(current_app.config)

    return [
        (MockRatePublisher.name, MockRatePublisher),
        (NrbRatePublisher.name, nrb_factory),
    ]


def register_publisher(name: str, factory: PublisherFactory) -> None:
    """Register a publisher factory under the given name."""

    if not name:
        raise ValueError("Publisher name cannot be empty.")
    _PUBLISHER_FACTORIES[name.lower()] = factory


def unregister_publisher(name: str) -> None:
    _PUBLISHER_FACTORIES.pop(name.lower(), None)


def list_publishers() -> List[str]:
    return sorted(_PUBLISHER_FACTORIES.keys())


def get_publisher(name: str | None = None) -> BaseRatePublisher:
    """Instantiate a publisher by name, defaulting to the NRB feed."""

    publisher_name = (name or "nrb").lower()
    try:
        factory = _PUBLISHER_FACTORIES[publisher_name]
    except KeyError as exc:
        available = ", ".join(list_publishers()) or "none registered"
        raise ProviderError(
            f"Unknown upstream '{publisher_name}'. Available upstreams: {available}"
        ) from exc
    return factory()


def init_publisher(app) -> BaseRatePublisher:
    """Attach the configured publisher to the Flask app."""

    with app.app_context():
        publisher = get_publisher(app.config.get("UPSTREAM_PROVIDER"))
    app.extensions["rate_publisher"] = publisher
    return publisher


def reset_registry(default_factories: Iterable[tuple[str, PublisherFactory]] | None = None) -> None:
    """Reset the registry; useful for tests."""

    _PUBLISHER_FACTORIES.clear()
    for name, factory in default_factories or _default_factories():
        register_publisher(name, factory)


reset_registry()
