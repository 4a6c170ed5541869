from datetime import date, time

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from accounts.models import DoctorProfile
from config.exceptions import SchedulingError
from doctors.generator import RecurrenceSpec, auto_week_spec, parse_weekdays
from doctors.services import generate_slots


class Command(BaseCommand):
    help = 'Generate time slots for one doctor, or for every active doctor, from a recurrence pattern'

    def add_arguments(self, parser):
        parser.add_argument('--doctor', type=int, help='Doctor profile id (default: all active doctors)')
        parser.add_argument(
            '--auto-week',
            action='store_true',
            help='Weekdays 10:00-18:00, hourly, for the next 7 days'
        )
        parser.add_argument('--from', dest='date_from', type=date.fromisoformat, help='First date, YYYY-MM-DD')
        parser.add_argument('--to', dest='date_to', type=date.fromisoformat, help='Last date, YYYY-MM-DD')
        parser.add_argument('--time-from', type=time.fromisoformat, default=time(9, 0), help='Day start, HH:MM')
        parser.add_argument('--time-to', type=time.fromisoformat, default=time(17, 0), help='Day end, HH:MM')
        parser.add_argument(
            '--weekdays',
            default='mon,tue,wed,thu,fri',
            help='Comma separated weekdays, e.g. mon,wed,fri'
        )
        parser.add_argument(
            '--step',
            type=int,
            default=settings.SLOT_STEP_MINUTES,
            help=f'Slot length in minutes (default: {settings.SLOT_STEP_MINUTES})'
        )

    def handle(self, *args, **options):
        doctors = DoctorProfile.objects.filter(is_active=True).select_related('user')
        if options['doctor']:
            doctors = doctors.filter(pk=options['doctor'])
            if not doctors.exists():
                raise CommandError(f"Doctor {options['doctor']} not found")

        if not options['auto_week'] and not (options['date_from'] and options['date_to']):
            raise CommandError('Pass --from and --to, or --auto-week')

        total = 0
        for doctor in doctors:
            spec = self.build_spec(doctor, options)
            try:
                result = generate_slots(spec)
            except SchedulingError as exc:
                raise CommandError(str(exc.detail))

            total += result.created
            self.stdout.write(f'{doctor}: {result.created} created')
            if result.failed:
                self.stdout.write(
                    self.style.WARNING(f'  {result.failed} skipped, first: {result.first_error.detail}')
                )

        self.stdout.write(
            self.style.SUCCESS(f'\nTotal slots generated: {total}')
        )

    def build_spec(self, doctor, options):
        if options['auto_week']:
            return auto_week_spec(doctor, timezone.localdate())
        return RecurrenceSpec(
            date_from=options['date_from'],
            date_to=options['date_to'],
            time_from=options['time_from'],
            time_to=options['time_to'],
            step_minutes=options['step'],
            weekdays=parse_weekdays(options['weekdays']),
            doctor=doctor,
        )
