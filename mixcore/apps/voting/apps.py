from django.apps import AppConfig


class VotingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'mixcore.apps.voting'
    verbose_name = 'Votación'
