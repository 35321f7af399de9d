"""Realtime consumers for WebSocket communication."""

from .base import BaseConsumer
from .provider_consumer import ProviderConsumer
from .request_consumer import RequestConsumer

__all__ = [
    "BaseConsumer",
    "ProviderConsumer",
    "RequestConsumer",
]
