"""Provider WebSocket consumer: new-request fan-out by service category."""

import logging
from typing import Dict, Any, Set

from channels.db import database_sync_to_async

from .base import BaseConsumer

logger = logging.getLogger(__name__)


class ProviderConsumer(BaseConsumer):
    """
    WebSocket consumer for service providers.

    On connect the provider joins one topic per category in their
    services_array, so new requests reach only qualified providers.

    Handles:
        - new_request events for the provider's categories
        - refresh_subscriptions after the provider's categories change
    """

    async def on_connect(self):
        if self.role != "provider":
            await self.send_error("This endpoint is for providers only")
            await self.close()
            return

        self.category_ids: Set[int] = set()
        await self._sync_category_topics()

        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "role": self.role,
            "categories": sorted(self.category_ids),
            "message": "Provider connected successfully",
        })

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        if msg_type == "refresh_subscriptions":
            await self._sync_category_topics()
            await self.send_success("subscriptions_updated", categories=sorted(self.category_ids))
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    async def _sync_category_topics(self):
        """Join topics for newly registered categories and leave dropped ones."""
        current = await self._get_categories()

        for category_id in self.category_ids - current:
            await self._leave_group(self.topics.category_topic(category_id))
        for category_id in current - self.category_ids:
            await self._join_group(self.topics.category_topic(category_id))

        self.category_ids = current
        logger.debug("Provider %s subscribed to categories %s", self.user_id, sorted(current))

    # ---------------------- Event Handlers (from group_send) ----------------------

    async def new_request(self, event):
        """Forward a newly created request to the provider."""
        await self.send_json({
            "type": "new_request",
            "service": event.get("service"),
            "title": event.get("title"),
            "budget": event.get("budget"),
            "request": event.get("request"),
        })

    # ---------------------- Database Helpers ----------------------

    @database_sync_to_async
    def _get_categories(self) -> Set[int]:
        from services.matching import CapabilityIndex
        return CapabilityIndex().categories_for(self.user_id)
