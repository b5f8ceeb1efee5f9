from django.contrib import admin
from .models import SavingsConfig, SavingsWallet, Transaction


@admin.register(SavingsWallet)
class SavingsWalletAdmin(admin.ModelAdmin):
    list_display = ("user", "balance", "total_saved", "total_invested", "total_withdrawn", "updated_at")
    search_fields = ("user__mobile",)
    readonly_fields = ("balance", "total_saved", "total_invested", "total_withdrawn")


@admin.register(SavingsConfig)
class SavingsConfigAdmin(admin.ModelAdmin):
    list_display = ("user", "auto_save_enabled", "percentage", "min_transaction_amount")
    list_filter = ("auto_save_enabled",)
    search_fields = ("user__mobile",)


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "type", "amount", "auto_save_amount", "status", "created_at")
    list_filter = ("type", "status")
    search_fields = ("user__mobile", "description")
    date_hierarchy = "created_at"
