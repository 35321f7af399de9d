"""Service requests app configuration."""

from django.apps import AppConfig


class ServiceRequestsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'service_requests'

    marketplace = None

    def get_marketplace(self):
        """The process-wide MarketplaceService, built on first use."""
        if self.marketplace is None:
            from services.marketplace import build_marketplace_service
            self.marketplace = build_marketplace_service()
        return self.marketplace
