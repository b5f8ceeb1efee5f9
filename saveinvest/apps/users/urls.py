from django.urls import path
from . import views

urlpatterns = [
    path("users/", views.register, name="user-register"),
    path("users/<int:user_id>/profile", views.update_profile, name="user-profile"),
    path("users/<int:user_id>/pin", views.set_pin, name="user-pin"),
    path("users/<int:user_id>/pin/check", views.check_pin, name="user-pin-check"),
    path("users/<int:user_id>/biometric", views.set_biometric, name="user-biometric"),
    path("users/<int:user_id>/notifications", views.notifications, name="user-notifications"),
    path(
        "users/<int:user_id>/notifications/mark-read",
        views.mark_notifications_read,
        name="user-notifications-mark-read",
    ),
    path(
        "users/<int:user_id>/notifications/mark-all-read",
        views.mark_all_notifications_read,
        name="user-notifications-mark-all-read",
    ),
    path(
        "users/<int:user_id>/notifications/<uuid:notification_id>",
        views.delete_notification,
        name="user-notification-detail",
    ),
    path(
        "users/<int:user_id>/notification-preferences",
        views.notification_preferences,
        name="user-notification-preferences",
    ),
]
