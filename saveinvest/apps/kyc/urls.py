from django.urls import path
from . import views

urlpatterns = [
    path("users/<int:user_id>/kyc", views.status_view, name="kyc-status"),
    path("users/<int:user_id>/kyc/pan", views.verify_pan, name="kyc-pan"),
    path(
        "users/<int:user_id>/kyc/aadhaar/initiate",
        views.initiate_aadhaar,
        name="kyc-aadhaar-initiate",
    ),
    path(
        "users/<int:user_id>/kyc/aadhaar/verify",
        views.verify_aadhaar,
        name="kyc-aadhaar-verify",
    ),
    path("users/<int:user_id>/kyc/bank", views.verify_bank, name="kyc-bank"),
    path("users/<int:user_id>/kyc/liveness", views.verify_liveness, name="kyc-liveness"),
    path("users/<int:user_id>/kyc/admin-status", views.admin_status, name="kyc-admin-status"),
]
