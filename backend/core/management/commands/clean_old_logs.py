"""
Management command to delete old activity logs, mail logs and read notifications
Usage: python manage.py clean_old_logs --days 90
"""
from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from backend.core.models import ActivityLog
from backend.notifications.models import EmailLog
from backend.notifications.services import delete_old_notifications


class Command(BaseCommand):
    help = 'Delete activity logs, mail logs and read notifications older than N days'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=90,
            help='Keep entries newer than this many days (default: 90)',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Only show how many entries would be deleted',
        )

    def handle(self, *args, **options):
        days = options['days']
        if days < 1:
            raise CommandError('--days must be at least 1')
        cutoff = timezone.now() - timedelta(days=days)

        activity_logs = ActivityLog.objects.filter(created_at__lt=cutoff)
        email_logs = EmailLog.objects.filter(created_at__lt=cutoff)

        if options['dry_run']:
            self.stdout.write(f"Would delete {activity_logs.count()} activity log(s) and "
                              f"{email_logs.count()} mail log(s) older than {days} days")
            return

        with transaction.atomic():
            activity_deleted, _ = activity_logs.delete()
            email_deleted, _ = email_logs.delete()
            notifications_deleted = delete_old_notifications(days)

        self.stdout.write(self.style.SUCCESS(
            f"Deleted {activity_deleted} activity log(s), {email_deleted} mail log(s) "
            f"and {notifications_deleted} read notification(s) older than {days} days"
        ))
