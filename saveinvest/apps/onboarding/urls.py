from django.urls import path
from . import views

urlpatterns = [
    path(
        "users/<int:user_id>/onboarding/status",
        views.onboarding_status,
        name="onboarding-status",
    ),
    path(
        "users/<int:user_id>/onboarding/kyc-requirement",
        views.kyc_requirement,
        name="onboarding-kyc-requirement",
    ),
]
