from django.apps import AppConfig


class SavingsAppConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "saveinvest.apps.savings"
