from django.apps import AppConfig


class StarmanConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "starman"
    verbose_name = "Starman - Staff Incentive Stars"
