from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from accounts.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin panel for marketplace users"""

    list_display = ["username", "email", "role", "location", "is_active"]
    list_filter = ["role", "is_active", "date_joined"]
    search_fields = ["username", "email"]
    ordering = ("username",)

    fieldsets = BaseUserAdmin.fieldsets + (
        ("Marketplace", {"fields": ("role", "location")}),
    )

    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Marketplace", {"fields": ("role", "location")}),
    )
