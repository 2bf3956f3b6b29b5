from django.apps import AppConfig

class AeroConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.aero'
    label = 'aero'
    verbose_name = 'Contacts'

    def ready(self):
        # Load signals when the app starts
        from . import signals  # noqa: F401
