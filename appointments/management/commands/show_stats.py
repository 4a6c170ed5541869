from django.core.management.base import BaseCommand
from django.db.models import Count
from django.utils import timezone

from appointments.queries import (
    appointments_by_specialization, list_appointments, pending_requests, status_counts,
)
from doctors.directory import doctor_labels
from doctors.models import TimeSlot


class Command(BaseCommand):
    help = 'Show slot and appointment statistics'

    def handle(self, *args, **options):
        counts = status_counts()

        self.stdout.write('\n' + '=' * 50)
        self.stdout.write('SCHEDULE STATISTICS')
        self.stdout.write('=' * 50 + '\n')

        self.stdout.write(self.style.HTTP_INFO('TIME SLOTS:'))
        self.stdout.write(f"  Total: {sum(counts['slots'].values())}")
        for label, count in counts['slots'].items():
            self.stdout.write(f'  {label.capitalize()}: {count}')

        self.stdout.write(self.style.HTTP_INFO('\nFREE SLOTS BY DOCTOR:'))
        free = dict(
            TimeSlot.objects.filter(status=TimeSlot.Status.AVAILABLE)
            .values_list('doctor')
            .annotate(n=Count('id'))
            .order_by()
        )
        labels = doctor_labels(free)
        for doctor_id, count in sorted(free.items(), key=lambda item: -item[1]):
            self.stdout.write(f'  {labels.get(doctor_id, doctor_id)}: {count}')

        self.stdout.write(self.style.HTTP_INFO('\nAPPOINTMENTS:'))
        self.stdout.write(f"  Total: {sum(counts['appointments'].values())}")
        for label, count in counts['appointments'].items():
            self.stdout.write(f'  {label.capitalize()}: {count}')
        self.stdout.write(f'  Waiting for the registry: {pending_requests().count()}')

        self.stdout.write(self.style.HTTP_INFO('\nBY SPECIALIZATION:'))
        for name, appointments in appointments_by_specialization().items():
            self.stdout.write(f'  {name}: {len(appointments)}')

        today = timezone.localdate()
        self.stdout.write(self.style.HTTP_INFO('\nTODAY:'))
        self.stdout.write(f'  Appointments: {list_appointments(date_from=today, date_to=today).count()}')

        self.stdout.write('\n' + '=' * 50 + '\n')
