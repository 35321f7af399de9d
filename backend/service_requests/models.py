from django.db import models
from django.conf import settings


class Service(models.Model):
    """A service category that requests and provider capabilities are keyed by"""

    name = models.CharField(max_length=100, unique=True)

    class Meta:
        db_table = 'services'
        ordering = ['name']

    def __str__(self):
        return self.name


class ServiceRequest(models.Model):
    """A consumer's posted need for a service category"""

    PENDING = 'pending'
    ASSIGNED = 'assigned'
    CLOSED = 'closed'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (ASSIGNED, 'Assigned'),
        (CLOSED, 'Closed'),
    ]

    consumer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='service_requests'
    )

    service = models.ForeignKey(
        Service,
        on_delete=models.PROTECT,
        related_name='requests'
    )

    title = models.CharField(max_length=200, blank=True)
    description = models.TextField(blank=True)
    budget = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    timeframe = models.CharField(max_length=100, null=True, blank=True)
    location = models.CharField(max_length=255, null=True, blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    assigned_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'service_requests'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['status', 'service'], name='request_status_service'),
        ]

    def __str__(self):
        return f"Request #{self.id} - {self.service} - {self.status}"


class Offer(models.Model):
    """A provider's bid against a specific request."""

    SUBMITTED = 'submitted'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'

    STATUS_CHOICES = [
        (SUBMITTED, 'Submitted'),
        (ACCEPTED, 'Accepted'),
        (REJECTED, 'Rejected'),
    ]

    request = models.ForeignKey(
        ServiceRequest,
        on_delete=models.CASCADE,
        related_name='offers'
    )

    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='offers'
    )

    budget = models.DecimalField(max_digits=12, decimal_places=2)
    timeframe = models.CharField(max_length=100)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=SUBMITTED)

    created_at = models.DateTimeField(auto_now_add=True)
    responded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'offers'
        ordering = ['created_at', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['request'],
                condition=models.Q(status='accepted'),
                name='unique_accepted_offer_per_request'
            )
        ]

    def __str__(self):
        return f"Offer #{self.id} - Request {self.request_id} -> Provider {self.provider_id}"
