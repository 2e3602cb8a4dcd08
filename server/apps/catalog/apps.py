"""Django app configuration for catalog app."""

from typing import override

from django.apps import AppConfig


class CatalogConfig(AppConfig):
    """Configuration for catalog app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'server.apps.catalog'
    verbose_name = 'Catalog'

    @override
    def ready(self) -> None:
        """Connect signal handlers once models are loaded."""
        from server.apps.catalog import signals  # noqa: F401
