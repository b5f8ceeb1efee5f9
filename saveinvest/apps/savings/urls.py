from django.urls import path
from . import views

urlpatterns = [
    path("users/<int:user_id>/wallet", views.wallet_view, name="savings-wallet"),
    path("users/<int:user_id>/savings-stats", views.savings_stats, name="savings-stats"),
    path("users/<int:user_id>/savings-config", views.savings_config, name="savings-config"),
    path("users/<int:user_id>/payments", views.record_payment, name="savings-payments"),
    path("users/<int:user_id>/deposits", views.deposit, name="savings-deposits"),
    path("users/<int:user_id>/withdrawals", views.withdraw, name="savings-withdrawals"),
    path("users/<int:user_id>/transactions", views.transactions, name="savings-transactions"),
]
