from django.apps import AppConfig


class UsersConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'saveinvest.apps.users'

    def ready(self):
        import saveinvest.apps.users.signals  # noqa
