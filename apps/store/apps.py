from django.apps import AppConfig  # type: ignore


class StoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.store"
    verbose_name = "Document store"
