from django.core.management.base import BaseCommand
from django.utils import timezone

from live.models import LiveLocation
from live.services import expire_overdue


class Command(BaseCommand):
    help = "Closes live sharing sessions whose expiry time has passed (meant for cron)."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="Only count, do not save.")
        parser.add_argument("--verbose", action="store_true", help="Print each session.")

    def handle(self, *args, **opts):
        dry = opts["dry_run"]
        verbose = opts["verbose"]
        now = timezone.now()

        if verbose:
            overdue = (LiveLocation.objects
                        .filter(is_active=True, expires_at__isnull=False, expires_at__lt=now)
                        .select_related("user"))
            for session in overdue:
                self.stdout.write(f"[EXPIRE] {session.pk} user={session.user} expired_at={session.expires_at:%Y-%m-%d %H:%M}")

        n = expire_overdue(now=now, dry_run=dry)

        if dry:
            self.stdout.write(f"{n} session(s) would be closed.")
        else:
            self.stdout.write(self.style.SUCCESS(f"{n} session(s) closed."))
