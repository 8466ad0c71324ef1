from django.apps import AppConfig


class CancellationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.cancellations"
    label = "cancellations"
