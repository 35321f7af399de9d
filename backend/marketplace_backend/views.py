import os
import redis
from django.utils import timezone
from rest_framework.decorators import api_view
from rest_framework.response import Response
from rest_framework import status
from channels.layers import get_channel_layer

from service_requests.models import ServiceRequest
from realtime.tasks import deliver_notification_task


@api_view(["GET"])
def health_check(request):
    """Health check endpoint for monitoring system status"""

    health_status = {
        "status": "healthy",
        "timestamp": timezone.now().isoformat(),
        "services": {}
    }

    def mark_unhealthy(name, reason):
        health_status["services"][name] = f"unhealthy: {reason}"
        health_status["status"] = "unhealthy"

    try:
        ServiceRequest.objects.exists()
        health_status["services"]["database"] = "healthy"
    except Exception as e:
        mark_unhealthy("database", e)

    try:
        redis_client = redis.Redis.from_url(
            os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            socket_timeout=3
        )
        redis_client.ping()
        health_status["services"]["redis"] = "healthy"
    except Exception as e:
        mark_unhealthy("redis", e)

    try:
        if get_channel_layer() is not None:
            health_status["services"]["channels"] = "healthy"
        else:
            mark_unhealthy("channels", "no channel layer")
    except Exception as e:
        mark_unhealthy("channels", e)

    if deliver_notification_task.name in deliver_notification_task.app.tasks:
        health_status["services"]["celery"] = "healthy"
    else:
        mark_unhealthy("celery", "task not registered")

    status_code = (
        status.HTTP_200_OK
        if health_status["status"] == "healthy"
        else status.HTTP_503_SERVICE_UNAVAILABLE
    )

    return Response(health_status, status=status_code)
