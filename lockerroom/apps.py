from django.apps import AppConfig


class LockerroomConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'lockerroom'
    verbose_name = 'LockerRoom'
