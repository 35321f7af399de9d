"""
Topic registry for marketplace notifications.

Topics are channel-layer groups. The registry is the only place group names
are built, so publishers and subscribers always agree on them:

    new_request_<category_id>   new PENDING requests of one service category
    request_<request_id>        status changes of one request
    user_<user_id>              personal group of a connected user

Subscribing (join/leave) is done by the websocket consumers; publishing is
done by NotificationDispatcher.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class TopicRegistry:
    """Maps category ids and request ids to channel-layer groups."""

    CATEGORY_PREFIX = "new_request"
    REQUEST_PREFIX = "request"
    USER_PREFIX = "user"

    def __init__(self, channel_layer=None):
        self.channel_layer = channel_layer

    # ---------------------- Group Names ----------------------

    def category_topic(self, category_id) -> str:
        return f"{self.CATEGORY_PREFIX}_{int(category_id)}"

    def request_topic(self, request_id) -> str:
        return f"{self.REQUEST_PREFIX}_{int(request_id)}"

    def user_topic(self, user_id) -> str:
        return f"{self.USER_PREFIX}_{int(user_id)}"

    # ---------------------- Subscriptions ----------------------

    async def join(self, topic: str, channel_name: str):
        await self.channel_layer.group_add(topic, channel_name)
        logger.debug("%s joined %s", channel_name, topic)

    async def leave(self, topic: str, channel_name: str):
        await self.channel_layer.group_discard(topic, channel_name)
        logger.debug("%s left %s", channel_name, topic)

    async def join_categories(self, category_ids, channel_name: str) -> set:
        """Subscribe a connection to every category topic it qualifies for."""
        topics = {self.category_topic(category_id) for category_id in category_ids}
        for topic in topics:
            await self.join(topic, channel_name)
        return topics
