from django.apps import AppConfig


class CommonConfig(AppConfig):
    """Shared helpers: currency, permissions, pagination and error handling."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "common"
