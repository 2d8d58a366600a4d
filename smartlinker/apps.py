from django.apps import AppConfig


class SmartlinkerConfig(AppConfig):
    """Configuration for the smartlinker Django app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'smartlinker'

    def ready(self) -> None:
        from . import signals  # noqa: F401
