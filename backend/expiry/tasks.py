"""Scheduled MHD jobs (see CELERY beat schedule in backend/config/celery.py)"""
import logging

from celery import shared_task

from . import services

logger = logging.getLogger(__name__)


def _run_date(value):
    return services.parse_date_value(value, 'run_date') if value else None


@shared_task(name='backend.expiry.tasks.send_daily_expiry_reminder')
def send_daily_expiry_reminder(run_date=None, force=False):
    result = services.notify_daily_expiry_products(_run_date(run_date), force=force)
    logger.info(f"Daily expiry reminder: {result['message']}")
    return result


@shared_task(name='backend.expiry.tasks.send_expiry_completion_report')
def send_expiry_completion_report(run_date=None, force=False):
    result = services.check_expired_products_and_notify_admins(_run_date(run_date), force=force)
    logger.info(f"Expiry completion report: {result['message']}")
    return result
