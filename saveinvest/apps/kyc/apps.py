from django.apps import AppConfig


class KycConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "saveinvest.apps.kyc"

    def ready(self):
        import saveinvest.apps.kyc.signals  # noqa
