from datetime import datetime

from django.db import models
from django.db.models import Q


class Specialization(models.Model):
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)

    def __str__(self):
        return self.name

    class Meta:
        ordering = ['name']


class Service(models.Model):
    """A consultation type offered by the clinic (e.g. OC1 primary online consultation)."""

    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=200)
    specialization = models.ForeignKey(
        Specialization,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='services'
    )
    duration_minutes = models.PositiveIntegerField(default=30)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ['code']

    def __str__(self):
        return f"{self.code} - {self.name}"


class TimeSlot(models.Model):
    class Status(models.TextChoices):
        AVAILABLE = 'available', 'Available'
        BUSY = 'busy', 'Busy'
        UNAVAILABLE = 'unavailable', 'Unavailable'

    doctor = models.ForeignKey('accounts.DoctorProfile', on_delete=models.CASCADE, related_name='time_slots')
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    status = models.CharField(max_length=12, choices=Status.choices, default=Status.AVAILABLE)

    # Occupancy: the slot owns the binding, the appointment reads it back as `appointment.slot`
    appointment = models.OneToOneField(
        'appointments.Appointment',
        on_delete=models.PROTECT,
        related_name='slot',
        null=True,
        blank=True
    )
    service = models.ForeignKey(
        Service,
        on_delete=models.SET_NULL,
        related_name='time_slots',
        null=True,
        blank=True
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ['doctor', 'date', 'start_time']
        ordering = ['date', 'start_time']
        constraints = [
            models.CheckConstraint(
                condition=Q(start_time__lt=models.F('end_time')),
                name='timeslot_start_before_end',
            ),
            models.CheckConstraint(
                condition=(
                    Q(status='busy', appointment__isnull=False)
                    | (~Q(status='busy') & Q(appointment__isnull=True))
                ),
                name='timeslot_busy_iff_bound',
            ),
        ]
        indexes = [
            models.Index(fields=['doctor', 'date', 'status'], name='timeslot_doctor_date_idx'),
        ]

    def __str__(self):
        return f"{self.doctor} - {self.date} {self.start_time:%H:%M}-{self.end_time:%H:%M}"

    @property
    def starts_at(self):
        """Naive start datetime; callers make it aware in the clinic timezone."""
        return datetime.combine(self.date, self.start_time)

    @property
    def is_available(self):
        return self.status == self.Status.AVAILABLE

    def overlaps(self, start, end):
        # Touching endpoints do not overlap
        return self.start_time < end and start < self.end_time
