from django.urls import path
from . import views

urlpatterns = [
    path("users/<int:user_id>/bank-accounts", views.bank_accounts, name="bank-accounts"),
    path(
        "users/<int:user_id>/bank-accounts/<int:account_id>",
        views.bank_account_detail,
        name="bank-account-detail",
    ),
    path(
        "users/<int:user_id>/bank-accounts/<int:account_id>/primary",
        views.set_primary,
        name="bank-account-primary",
    ),
    path(
        "users/<int:user_id>/bank-accounts/<int:account_id>/verify",
        views.verify_account,
        name="bank-account-verify",
    ),
]
