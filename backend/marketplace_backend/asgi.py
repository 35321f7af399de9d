"""
ASGI config for the marketplace backend.

HTTP goes to Django; websockets go to the realtime consumers, authenticated
by JWT (query string) or the Django session.
"""

import os

import django
from channels.auth import AuthMiddlewareStack
from channels.routing import ProtocolTypeRouter, URLRouter
from channels.security.websocket import AllowedHostsOriginValidator
from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "marketplace_backend.settings")

# Populate the app registry before importing consumers that touch ORM models
django.setup()

django_asgi_app = get_asgi_application()

from realtime.middleware import QueryTokenAuthMiddleware  # noqa: E402
from realtime.routing import websocket_urlpatterns  # noqa: E402

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        "websocket": AllowedHostsOriginValidator(
            AuthMiddlewareStack(QueryTokenAuthMiddleware(URLRouter(websocket_urlpatterns)))
        ),
    }
)
