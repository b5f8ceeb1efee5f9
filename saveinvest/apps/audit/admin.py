from django.contrib import admin
from .models import DataAccessLog


@admin.register(DataAccessLog)
class DataAccessLogAdmin(admin.ModelAdmin):
    list_display = ("user", "actor", "resource", "action", "created_at")
    list_filter = ("actor", "resource", "action")
    search_fields = ("user__mobile",)
    date_hierarchy = "created_at"
