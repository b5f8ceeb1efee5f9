from django.urls import path
from . import views

urlpatterns = [
    path("products", views.products, name="investment-products"),
    path("users/<int:user_id>/auto-invest-rules", views.auto_invest_rules, name="auto-invest-rules"),
    path(
        "users/<int:user_id>/auto-invest-rules/evaluate",
        views.evaluate_rules,
        name="auto-invest-evaluate",
    ),
    path(
        "users/<int:user_id>/auto-invest-rules/<int:rule_id>",
        views.auto_invest_rule_detail,
        name="auto-invest-rule-detail",
    ),
    path(
        "users/<int:user_id>/auto-invest-rules/<int:rule_id>/toggle",
        views.toggle_rule,
        name="auto-invest-rule-toggle",
    ),
    path("users/<int:user_id>/investments", views.purchase_investment, name="investments"),
    path("users/<int:user_id>/portfolio", views.portfolio, name="portfolio"),
    path("users/<int:user_id>/redemptions", views.redemptions, name="redemptions"),
    path("products/<int:product_id>/nav-history", views.nav_history, name="nav-history"),
]
