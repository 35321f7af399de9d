from django.contrib import admin
from providers.models import ProviderProfile


@admin.register(ProviderProfile)
class ProviderProfileAdmin(admin.ModelAdmin):
    """Admin panel for managing Provider Profiles"""

    list_display = ["user", "platform_tokens", "service_names"]
    list_filter = ["services"]
    search_fields = ["user__username", "services__name"]
    filter_horizontal = ["services"]
    ordering = ("user__username",)

    def service_names(self, obj):
        return ", ".join(service.name for service in obj.services.all())
