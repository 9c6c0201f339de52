import logging
import os

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from lockerroom.models import AdminRole, User
from lockerroom.roles import DEFAULT_ADMIN_PERMISSIONS, SYSTEM_ADMIN

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Create or repair the platform system admin from SYSADMIN_EMAIL / SYSADMIN_PASSWORD. Safe to run on every deploy."

    def add_arguments(self, parser):
        parser.add_argument('--email', default=os.getenv('SYSADMIN_EMAIL', ''))
        parser.add_argument('--password', default=os.getenv('SYSADMIN_PASSWORD', ''))
        parser.add_argument('--name', default=os.getenv('SYSADMIN_NAME', 'System Admin'))

    def handle(self, *args, **options):
        email = (options['email'] or '').strip().lower()
        password = options['password']
        if not email:
            raise CommandError("Set SYSADMIN_EMAIL or pass --email")

        with transaction.atomic():
            user = User.objects.filter(email__iexact=email).first()
            if user is None:
                if not password:
                    raise CommandError("Set SYSADMIN_PASSWORD or pass --password to create the system admin")
                user = User.objects.create_superuser(email, password, name=options['name'])
                action = "created"
            else:
                user.role = SYSTEM_ADMIN
                user.name = user.name or options['name']
                user.is_staff = True
                user.is_superuser = True
                user.is_frozen = False
                user.email_verified = True
                if password:
                    user.set_password(password)
                    user.is_one_time_password = False
                user.save()
                action = "updated"

            AdminRole.objects.update_or_create(
                user=user,
                defaults={'role': SYSTEM_ADMIN, 'permissions': DEFAULT_ADMIN_PERMISSIONS[SYSTEM_ADMIN]},
            )

        logger.info(f"System admin {email} {action}")
        self.stdout.write(self.style.SUCCESS(f"System admin {email} {action}"))
