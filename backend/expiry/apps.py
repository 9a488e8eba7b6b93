from django.apps import AppConfig


class ExpiryConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'backend.expiry'
    verbose_name = 'MHD management'
