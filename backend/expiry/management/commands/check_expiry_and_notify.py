"""
Run the MHD notification jobs from cron or by hand.
Both jobs are idempotent per local date; --force sends again.
"""
from django.core.management.base import BaseCommand, CommandError
from backend.core.exceptions import ValidationError
from backend.expiry import services


class Command(BaseCommand):
    help = "Send the daily MHD reminder and/or the completion report to the admins"

    def add_arguments(self, parser):
        parser.add_argument(
            '--job',
            choices=['reminder', 'completion', 'all'],
            default='completion',
            help='Which job to run (default: completion)',
        )
        parser.add_argument(
            '--date',
            help='Store-local date to run for (YYYY-MM-DD, default: today)',
        )
        parser.add_argument(
            '--force',
            action='store_true',
            help='Run even if the job already ran for the date',
        )

    def handle(self, *args, **options):
        run_date = None
        if options['date']:
            try:
                run_date = services.parse_date_value(options['date'])
            except ValidationError:
                raise CommandError(f"Invalid date '{options['date']}', expected YYYY-MM-DD")

        jobs = []
        if options['job'] in ('reminder', 'all'):
            jobs.append(('Daily reminder', services.notify_daily_expiry_products))
        if options['job'] in ('completion', 'all'):
            jobs.append(('Completion report', services.check_expired_products_and_notify_admins))

        for label, job in jobs:
            result = job(run_date, force=options['force'])
            if not result['success']:
                raise CommandError(f"{label} failed: {result['message']}")

            style = self.style.WARNING if result.get('skipped') else self.style.SUCCESS
            self.stdout.write(style(f"{label}: {result['message']}"))
            if result['emailResults']:
                sent = sum(1 for r in result['emailResults'] if r['success'])
                self.stdout.write(f"  {sent}/{len(result['emailResults'])} mail(s) sent, {result['count']} product(s)")
