from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "evalcore.apps.core"
    verbose_name = "Core (errores y configuración)"
