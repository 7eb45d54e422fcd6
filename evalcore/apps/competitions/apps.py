from django.apps import AppConfig


class CompetitionsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "evalcore.apps.competitions"
    verbose_name = "Competencias (etapas, criterios y postulaciones)"
