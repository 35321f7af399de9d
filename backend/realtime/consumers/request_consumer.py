"""Request tracking WebSocket consumer for real-time status updates."""

import logging
from typing import Dict, Any

from channels.db import database_sync_to_async

from .base import BaseConsumer

logger = logging.getLogger(__name__)


class RequestConsumer(BaseConsumer):
    """
    WebSocket consumer for request status tracking.

    Used by consumers (for their own requests) and by providers (for requests
    they have bid on) to receive status changes as they happen.
    """

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        if msg_type == "watch_request":
            await self._handle_watch(data)
        elif msg_type == "unwatch_request":
            await self._handle_unwatch(data)
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    # ---------------------- Message Handlers ----------------------

    async def _handle_watch(self, data: Dict[str, Any]):
        request_id = data.get("request_id")

        if request_id is None:
            await self.send_error("watch_request requires request_id")
            return

        if not await self._is_participant(request_id):
            await self.send_error("You are not authorized to watch this request")
            return

        await self._join_group(self.topics.request_topic(request_id))
        await self.send_success("watching_request", request_id=request_id)

    async def _handle_unwatch(self, data: Dict[str, Any]):
        request_id = data.get("request_id")

        if request_id is None:
            return

        await self._leave_group(self.topics.request_topic(request_id))
        await self.send_success("stopped_watching_request", request_id=request_id)

    # ---------------------- Database Helpers ----------------------

    @database_sync_to_async
    def _is_participant(self, request_id) -> bool:
        """The request's owner, or a provider with an offer on it."""
        from service_requests.models import Offer, ServiceRequest
        try:
            request_id = int(request_id)
        except (TypeError, ValueError):
            return False

        if ServiceRequest.objects.filter(id=request_id, consumer_id=self.user_id).exists():
            return True
        return Offer.objects.filter(request_id=request_id, provider_id=self.user_id).exists()
