# mill_core/iam/management/commands/expire_invitations.py

from django.core.management.base import BaseCommand

from mill_core.iam.services import UserService


class Command(BaseCommand):
    help = "Mark pending invitations past their expiry as expired (idempotent)."

    def handle(self, *args, **options):
        count = UserService.expire_invitations()
        self.stdout.write(self.style.SUCCESS(f"Invitations expired: {count}"))
