from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone
from datetime import timedelta

from doctors.services import bulk_delete_available


class Command(BaseCommand):
    help = 'Delete available time slots that have passed'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=settings.SLOT_CLEANUP_DAYS,
            help=f'Delete slots older than this many days (default: {settings.SLOT_CLEANUP_DAYS})'
        )
        parser.add_argument('--doctor', type=int, help='Limit to one doctor profile id')

    def handle(self, *args, **options):
        days = options['days']
        cutoff_date = timezone.localdate() - timedelta(days=days)

        # Booked and unavailable slots stay
        count = bulk_delete_available(
            doctor=options['doctor'],
            date_to=cutoff_date - timedelta(days=1),
        )

        self.stdout.write(
            self.style.SUCCESS(f'Deleted {count} old available slots')
        )
