from django.contrib import admin
from .models import AppUser, Notification, NotificationPreference


@admin.register(AppUser)
class AppUserAdmin(admin.ModelAdmin):
    list_display = ("mobile", "name", "kyc_level", "kyc_status", "is_active", "created_at")
    list_filter = ("kyc_level", "kyc_status", "is_active")
    search_fields = ("mobile", "name", "email")
    readonly_fields = ("kyc_level", "kyc_status", "pin_hash")


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("user", "kind", "sent", "is_read", "sent_at", "created_at")
    list_filter = ("kind", "sent", "is_read")
    search_fields = ("user__mobile",)


@admin.register(NotificationPreference)
class NotificationPreferenceAdmin(admin.ModelAdmin):
    list_display = ("user", "push_enabled", "savings_alerts", "investment_alerts", "kyc_alerts")
    search_fields = ("user__mobile",)
