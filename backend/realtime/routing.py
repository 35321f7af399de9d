"""WebSocket URL routing for the realtime app."""

from django.urls import re_path

from .consumers.provider_consumer import ProviderConsumer
from .consumers.request_consumer import RequestConsumer

websocket_urlpatterns = [
    # Providers receive new requests for their categories
    # URL: ws://localhost:8000/ws/provider/
    re_path(
        r"ws/provider/$",
        ProviderConsumer.as_asgi(),
        name="provider-ws"
    ),

    # Request status tracking (consumers and bidding providers)
    # URL: ws://localhost:8000/ws/requests/
    re_path(
        r"ws/requests/$",
        RequestConsumer.as_asgi(),
        name="request-ws"
    ),
]
