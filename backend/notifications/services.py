"""
Notification services: queued mail, in-app notifications and recipients
"""
import logging
from datetime import timedelta

from django.db.models import Q
from django.utils import timezone

from backend.core.models import User, StoreSettings, default_email_notification_settings
from backend.core.exceptions import NotFoundError
from .email import TEMPLATES, send_logged_email
from .models import Notification, EmailLog
from .tasks import send_email_task

logger = logging.getLogger(__name__)


def get_notification_settings():
    return {**default_email_notification_settings(), **(StoreSettings.load().email_notification_settings or {})}


def queue_email(to, template, context=None, subject=None):
    """
    Queue a templated mail on the Celery worker.

    When the broker cannot be reached the mail is sent synchronously instead.
    Returns {'success', 'email_log_id', 'queued', ...}.
    """
    if template not in TEMPLATES:
        raise NotFoundError(f"Email template '{template}' not found")
    email_log = EmailLog.objects.create(to_email=to, subject=subject or '', template=template,
                                        context=context or {})
    try:
        send_email_task.delay(email_log.id)
    except Exception as e:
        logger.warning(f"Mail queue unavailable, sending '{template}' synchronously: {str(e)}")
        return {**send_logged_email(email_log), 'queued': False}

    email_log.refresh_from_db(fields=['status', 'error', 'message_id'])
    return {
        'success': email_log.status != 'failed',
        'email_log_id': email_log.id,
        'status': email_log.status,
        'queued': True,
    }


def get_admin_recipients(permission=None):
    """Active admins, optionally only those holding a permission"""
    admins = User.objects.filter(is_active=True, role__in=['admin', 'superadmin']).order_by('id')
    if permission is None:
        return list(admins)
    return [admin for admin in admins if admin.has_admin_permission(permission)]


def create_notification(user, title, message='', notification_type='info', link=''):
    return Notification.objects.create(user=user, title=title, message=message,
                                       type=notification_type, link=link or '')


def notify_admins(permission, title, message='', notification_type='info', link=''):
    """In-app notification for every admin holding the permission"""
    notifications = [
        Notification(user=admin, title=title, message=message, type=notification_type, link=link or '')
        for admin in get_admin_recipients(permission)
    ]
    Notification.objects.bulk_create(notifications)
    return len(notifications)


def bulk_create_notifications(user_ids, title, message='', notification_type='info', link=''):
    users = User.objects.filter(id__in=user_ids, is_active=True)
    notifications = [
        Notification(user=user, title=title, message=message, type=notification_type, link=link or '')
        for user in users
    ]
    Notification.objects.bulk_create(notifications)
    return len(notifications)


def get_unread_count(user):
    return Notification.objects.filter(user=user, is_read=False).count()


def mark_as_read(user, notification_id):
    notification = Notification.objects.filter(user=user, pk=notification_id).first()
    if notification is None:
        raise NotFoundError('Notification not found')
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = timezone.now()
        notification.save(update_fields=['is_read', 'read_at'])
    return notification


def mark_all_as_read(user):
    return Notification.objects.filter(user=user, is_read=False).update(is_read=True, read_at=timezone.now())


def delete_notification(user, notification_id):
    deleted, _ = Notification.objects.filter(user=user, pk=notification_id).delete()
    if not deleted:
        raise NotFoundError('Notification not found')


def delete_old_notifications(days=30):
    """Remove read notifications older than the given number of days"""
    cutoff = timezone.now() - timedelta(days=days)
    deleted, _ = Notification.objects.filter(Q(is_read=True) & Q(created_at__lt=cutoff)).delete()
    return deleted
