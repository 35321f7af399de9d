"""
Notification dispatcher.

Publishes marketplace events to channel-layer groups. This is a best-effort
pub/sub layer, not a durable queue: clients that are offline miss the event,
and delivery failures are logged and dropped without reaching the command
that triggered them.

Events are only emitted once the surrounding database transaction commits, so
observers never hear about state that was rolled back.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from asgiref.sync import async_to_sync
from django.db import transaction

from .topics import TopicRegistry

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Fan-out of request events to subscribed websocket connections.

    Args:
        channel_layer: Channels layer used for inline delivery
        topics: TopicRegistry that names the groups
        use_celery: hand delivery to ``deliver_notification_task`` instead of
            sending from the calling thread
    """

    def __init__(self, channel_layer=None, topics: Optional[TopicRegistry] = None, use_celery: bool = False):
        self.channel_layer = channel_layer
        self.topics = topics or TopicRegistry(channel_layer)
        self.use_celery = use_celery

    # ---------------------- Events ----------------------

    def publish_new_request(self, request, service) -> None:
        """Broadcast a new PENDING request to providers of its category."""
        from service_requests.serializers import ServiceRequestSerializer

        request_data = dict(ServiceRequestSerializer(request).data)
        message = {
            "type": "new_request",
            "service": service.name,
            "title": request.title,
            "budget": float(request.budget) if request.budget is not None else None,
            "request": request_data,
        }
        self._emit(self.topics.category_topic(service.id), message)

    def publish_status_change(self, request, offer=None) -> None:
        """Send the request's current status (and the offer that changed it) to watchers and the owner."""
        from service_requests.serializers import OfferSerializer

        message: Dict[str, Any] = {
            "type": "request_status",
            "requestId": request.id,
            "status": request.status,
        }
        if offer is not None:
            message["offer"] = dict(OfferSerializer(offer).data)

        self._emit(self.topics.request_topic(request.id), message)
        self._emit(self.topics.user_topic(request.consumer_id), message)

    # ---------------------- Delivery ----------------------

    def _emit(self, group: str, message: Dict[str, Any]) -> None:
        transaction.on_commit(lambda: self._deliver(group, message))

    def _deliver(self, group: str, message: Dict[str, Any]) -> bool:
        try:
            if self.use_celery:
                from .tasks import deliver_notification_task
                deliver_notification_task.delay(group, message)
                return True

            channel_layer = self.channel_layer
            if channel_layer is None:
                from channels.layers import get_channel_layer
                channel_layer = get_channel_layer()
            if channel_layer is None:
                logger.warning("No channel layer available; dropping %s for %s", message["type"], group)
                return False

            logger.debug("WS -> %s: %s", group, message["type"])
            async_to_sync(channel_layer.group_send)(group, message)
            return True
        except Exception:
            logger.exception("Failed to dispatch %s to %s", message.get("type"), group)
            return False
