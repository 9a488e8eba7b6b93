"""
Management command to create (or promote) a store admin
Usage: python manage.py create_admin --username anna --email anna@example.com [--superadmin]
"""
import getpass

from django.core.management.base import BaseCommand, CommandError
from backend.core.models import User


class Command(BaseCommand):
    help = 'Create a store admin, or promote an existing user to admin'

    def add_arguments(self, parser):
        parser.add_argument('--username', required=True)
        parser.add_argument('--email', help='Required when creating a new user')
        parser.add_argument('--password', help='Prompted for when omitted')
        parser.add_argument(
            '--superadmin',
            action='store_true',
            help='Grant the superadmin role (all permissions)',
        )
        parser.add_argument(
            '--permissions',
            default='',
            help='Comma-separated permission codes (default: all)',
        )

    def handle(self, *args, **options):
        valid_codes = [code for code, _ in User.PERMISSION_CHOICES]
        if options['permissions']:
            permissions = [code.strip() for code in options['permissions'].split(',') if code.strip()]
            unknown = sorted(set(permissions) - set(valid_codes))
            if unknown:
                raise CommandError(f"Unknown permission code(s): {', '.join(unknown)}")
        else:
            permissions = valid_codes
        role = 'superadmin' if options['superadmin'] else 'admin'

        user = User.objects.filter(username=options['username']).first()
        if user:
            user.role = role
            user.permissions = permissions
            user.is_staff = True
            if options['password']:
                user.set_password(options['password'])
            user.save()
            self.stdout.write(self.style.SUCCESS(f"Promoted '{user.username}' to {role}"))
            return

        if not options['email']:
            raise CommandError('--email is required when creating a new user')
        password = options['password'] or getpass.getpass('Password: ')
        if not password:
            raise CommandError('Password must not be empty')

        user = User.objects.create_user(
            username=options['username'],
            email=options['email'],
            password=password,
            role=role,
            permissions=permissions,
            is_staff=True,
            is_superuser=options['superadmin'],
        )
        self.stdout.write(self.style.SUCCESS(f"Created {role} '{user.username}' ({user.email})"))
