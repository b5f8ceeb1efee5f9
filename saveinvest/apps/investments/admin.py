from django.contrib import admin
from .models import AutoInvestRule, Investment, InvestmentProduct, NavHistory, Redemption


@admin.register(InvestmentProduct)
class InvestmentProductAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "risk_level", "min_investment", "exit_load", "is_active")
    list_filter = ("category", "risk_level", "is_active")
    search_fields = ("name", "feed_code")


@admin.register(NavHistory)
class NavHistoryAdmin(admin.ModelAdmin):
    list_display = ("product", "date", "nav")
    list_filter = ("product",)
    date_hierarchy = "date"


@admin.register(AutoInvestRule)
class AutoInvestRuleAdmin(admin.ModelAdmin):
    list_display = (
        "user",
        "product",
        "trigger_type",
        "trigger_value",
        "sizing_kind",
        "sizing_value",
        "enabled",
        "status",
        "sequence",
        "last_executed_at",
    )
    list_filter = ("trigger_type", "sizing_kind", "enabled", "status")
    search_fields = ("user__mobile", "product__name")


@admin.register(Investment)
class InvestmentAdmin(admin.ModelAdmin):
    list_display = ("user", "product", "amount_invested", "units", "purchase_nav", "rule", "created_at")
    list_filter = ("product", "status")
    search_fields = ("user__mobile",)
    date_hierarchy = "created_at"


@admin.register(Redemption)
class RedemptionAdmin(admin.ModelAdmin):
    list_display = ("user", "investment", "units", "nav", "amount", "exit_load_amount", "is_full", "created_at")
    list_filter = ("is_full",)
    search_fields = ("user__mobile",)
    date_hierarchy = "created_at"
