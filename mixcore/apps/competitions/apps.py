from django.apps import AppConfig


class CompetitionsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'mixcore.apps.competitions'
    verbose_name = 'Competencias'
