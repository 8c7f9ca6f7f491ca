from django.apps import AppConfig


class PaymentLinksConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "payment_links"
