"""Upstream publisher interfaces and data structures."""

from .base import BaseRatePublisher, NotYetPublished, ProviderError, TransportError
from .mock import MockRatePublisher
from .nrb_client import NrbAPIError, NrbClient, NrbClientConfig
from .nrb_provider import NrbRatePublisher
from .schemas import DayPublication, PublishedRate, RatesPublication

__all__ = [
    "BaseRatePublisher",
    "DayPublication",
    "MockRatePublisher",
    "NotYetPublished",
    "NrbAPIError",
    "NrbClient",
    "NrbClientConfig",
    "NrbRatePublisher",
    "ProviderError",
    "PublishedRate",
    "RatesPublication",
    "TransportError",
]
