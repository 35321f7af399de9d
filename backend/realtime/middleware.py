"""WebSocket authentication via a JWT passed in the query string."""

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)


@database_sync_to_async
def _user_for_token(raw_token: str):
    try:
        user_id = AccessToken(raw_token)["user_id"]
    except (TokenError, KeyError) as e:
        logger.debug("JWT auth failed: %s", e)
        return AnonymousUser()

    User = get_user_model()
    return User.objects.filter(id=user_id, is_active=True).first() or AnonymousUser()


class QueryTokenAuthMiddleware(BaseMiddleware):
    """
    Authenticate a WebSocket connection from ``?token=<access token>``.

    Mobile clients cannot send cookies on the handshake, so they pass the JWT
    in the query string. Without a token the scope keeps whatever user the
    session middleware resolved (browser clients).
    """

    async def __call__(self, scope, receive, send):
        params = parse_qs(scope.get("query_string", b"").decode())
        tokens = params.get("token")

        if tokens:
            scope = dict(scope, user=await _user_for_token(tokens[0]))
        elif "user" not in scope:
            scope = dict(scope, user=AnonymousUser())

        return await super().__call__(scope, receive, send)
