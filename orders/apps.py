# orders/apps.py
from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "orders"
    verbose_name = "Orders"

    def ready(self):
        """
        Register the order domain event handlers.

        @register_handler only takes effect once the module is imported.
        """
        import orders.handlers  # noqa
