"""Celery application for background mail delivery and the daily MHD jobs.

Usage:
    celery -A backend.config.celery worker --loglevel=info
    celery -A backend.config.celery beat --loglevel=info
"""
import os

from celery import Celery
from celery.schedules import crontab
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'backend.config.settings')

celery_app = Celery('backend')
celery_app.config_from_object('django.conf:settings', namespace='CELERY')
celery_app.autodiscover_tasks()

celery_app.conf.update(
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        'expiry-daily-reminder': {
            'task': 'backend.expiry.tasks.send_daily_expiry_reminder',
            'schedule': crontab(hour=int(os.getenv('EXPIRY_REMINDER_HOUR', '7')), minute=0),
        },
        'expiry-completion-report': {
            'task': 'backend.expiry.tasks.send_expiry_completion_report',
            'schedule': crontab(hour=int(os.getenv('EXPIRY_COMPLETION_HOUR', '23')), minute=0),
        },
        'cleanup-read-notifications': {
            'task': 'backend.notifications.tasks.cleanup_old_notifications',
            'schedule': crontab(hour=3, minute=30),
        },
    },
)
