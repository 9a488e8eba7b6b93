"""Celery tasks for outgoing mail and notification housekeeping"""
import logging

from celery import shared_task

from .models import EmailLog

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
BACKOFF_SECONDS = 5


@shared_task(bind=True, name='backend.notifications.tasks.send_email_task', max_retries=MAX_RETRIES)
def send_email_task(self, email_log_id):
    """Send a queued mail; retries with exponential backoff (5s, 10s, 20s)"""
    from .email import send_logged_email

    email_log = EmailLog.objects.filter(pk=email_log_id).first()
    if email_log is None:
        logger.warning(f"Email log {email_log_id} vanished before sending")
        return {'success': False, 'error': 'Email log not found'}
    if email_log.status == 'sent':
        return {'success': True, 'email_log_id': email_log.id, 'message_id': email_log.message_id}

    result = send_logged_email(email_log)
    if not result['success'] and self.request.retries < MAX_RETRIES and not self.request.is_eager:
        raise self.retry(countdown=BACKOFF_SECONDS * (2 ** self.request.retries))
    return result


@shared_task(name='backend.notifications.tasks.cleanup_old_notifications')
def cleanup_old_notifications(days=30):
    from .services import delete_old_notifications

    deleted = delete_old_notifications(days)
    logger.info(f"Deleted {deleted} read notifications older than {days} days")
    return deleted
