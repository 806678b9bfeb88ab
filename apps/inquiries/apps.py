from django.apps import AppConfig  # type: ignore


class InquiriesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.inquiries"
    verbose_name = "Contact requests"
