from django.db import models
from django.conf import settings

User = settings.AUTH_USER_MODEL


class ProviderProfile(models.Model):
    """Provider-specific capabilities and platform token balance"""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='provider_profile')

    # The categories this provider is registered for (services_array).
    # Read-only for request lifecycle and offer arbitration.
    services = models.ManyToManyField(
        'service_requests.Service',
        related_name='providers',
        blank=True
    )

    platform_tokens = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'provider_profiles'

    def __str__(self):
        return f"{self.user} - {self.platform_tokens} tokens"
