"""Tells what to show in the Django admin interface for service requests"""

from django.contrib import admin
from .models import Offer, Service, ServiceRequest


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ("id", "name")
    search_fields = ("name",)


class OfferInline(admin.TabularInline):
    model = Offer
    extra = 0
    readonly_fields = ("provider", "budget", "timeframe", "status", "created_at", "responded_at")
    can_delete = False


@admin.register(ServiceRequest)
class ServiceRequestAdmin(admin.ModelAdmin):
    """Service Request admin"""
    list_display = ['id', 'consumer', 'service', 'title', 'budget', 'status', 'created_at', 'assigned_at', 'closed_at']
    list_filter = ['status', 'service', 'created_at']
    search_fields = ['consumer__username', 'title', 'location']
    readonly_fields = ['status', 'created_at', 'assigned_at', 'closed_at']
    date_hierarchy = 'created_at'
    inlines = [OfferInline]


@admin.register(Offer)
class OfferAdmin(admin.ModelAdmin):
    list_display = ("id", "request", "provider", "budget", "timeframe", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("request__id", "provider__username")
    readonly_fields = ("status", "created_at", "responded_at")
