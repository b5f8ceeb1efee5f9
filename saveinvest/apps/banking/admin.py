from django.contrib import admin
from .models import BankAccount


@admin.register(BankAccount)
class BankAccountAdmin(admin.ModelAdmin):
    list_display = ("user", "bank_name", "ifsc_code", "is_primary", "is_verified", "created_at")
    list_filter = ("is_primary", "is_verified", "bank_name")
    search_fields = ("user__mobile", "ifsc_code", "holder_name")
    exclude = ("account_number_encrypted", "account_number_hash")
