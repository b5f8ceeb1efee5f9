from django.urls import path
from . import views

urlpatterns = [
    path(
        "users/<int:user_id>/analytics/savings-trend",
        views.savings_trend,
        name="analytics-savings-trend",
    ),
    path(
        "users/<int:user_id>/analytics/investments",
        views.investment_summary,
        name="analytics-investments",
    ),
]
