from django.db import models
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    """Extended user model with marketplace role selection"""
    ROLE_CONSUMER = 'consumer'
    ROLE_PROVIDER = 'provider'

    ROLE_CHOICES = [
        (ROLE_CONSUMER, 'Consumer'),
        (ROLE_PROVIDER, 'Service Provider'),
    ]

    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_CONSUMER)
    location = models.CharField(max_length=255, blank=True)

    class Meta:
        db_table = 'users'

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"
