"""
Celery configuration for the marketplace backend.

Used for background delivery of realtime notifications
(see realtime.tasks.deliver_notification_task).
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "marketplace_backend.settings")

app = Celery("marketplace_backend")

# Read CELERY_* keys from Django settings
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()

app.conf.update(
    task_routes={
        "realtime.tasks.*": {"queue": "notifications"},
    },
    task_acks_late=False,
    task_time_limit=60,
)
