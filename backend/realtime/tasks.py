"""Celery tasks for background notification delivery."""

import logging

from asgiref.sync import async_to_sync
from celery import shared_task
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)


@shared_task(ignore_result=True)
def deliver_notification_task(group: str, message: dict) -> bool:
    """
    Deliver one notification to a channel-layer group.

    Best effort: nothing is retried and failures only get logged.
    """
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning("No channel layer available; dropping %s for %s", message.get("type"), group)
        return False

    try:
        async_to_sync(channel_layer.group_send)(group, message)
    except Exception:
        logger.exception("Failed to deliver %s to %s", message.get("type"), group)
        return False

    logger.debug("Delivered %s to %s", message.get("type"), group)
    return True
