from django.conf import settings
from django.db import models
from django.utils import timezone
import random
import string

from doctors.models import TimeSlot


class Appointment(models.Model):
    class Status(models.TextChoices):
        REQUESTED = 'requested', 'Requested'
        CONFIRMED = 'confirmed', 'Confirmed'
        COMPLETED = 'completed', 'Completed'
        CANCELLED = 'cancelled', 'Cancelled'

    TERMINAL_STATUSES = (Status.COMPLETED, Status.CANCELLED)

    # Appointment identifier
    appointment_number = models.CharField(max_length=20, unique=True, blank=True)

    # Who asked for the consultation
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='owned_appointments'
    )
    pet_name = models.CharField(max_length=100, blank=True)
    pet_species = models.CharField(max_length=50, blank=True)
    complaint = models.TextField(blank=True, help_text="Reason for the visit in the owner's words")

    # What the requester asked for
    desired_doctor = models.ForeignKey(
        'accounts.DoctorProfile',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='requested_appointments'
    )
    desired_service = models.ForeignKey(
        'doctors.Service',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='requested_appointments'
    )

    # What the clinic decided
    doctor = models.ForeignKey(
        'accounts.DoctorProfile',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='doctor_appointments'
    )
    service = models.ForeignKey(
        'doctors.Service',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='appointments'
    )

    # Schedule; derived from the bound slot when there is one
    starts_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.REQUESTED)

    confirmed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    # Cancellation
    cancellation_reason = models.TextField(blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='cancelled_appointments'
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'starts_at'], name='appt_status_starts_idx'),
            models.Index(fields=['doctor', 'starts_at'], name='appt_doctor_starts_idx'),
        ]

    def __str__(self):
        return f"{self.appointment_number} - {self.owner.email} ({self.get_status_display()})"

    def save(self, *args, **kwargs):
        # Generate appointment number if not exists
        if not self.appointment_number:
            self.appointment_number = self.generate_appointment_number()
        super().save(*args, **kwargs)

    def generate_appointment_number(self):
        """Generate unique appointment number: APT-YYYYMMDD-XXXX"""
        date_str = timezone.now().strftime('%Y%m%d')
        random_str = ''.join(random.choices(string.ascii_uppercase + string.digits, k=4))
        return f"APT-{date_str}-{random_str}"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def bound_slot(self):
        """The slot currently holding this appointment, or None."""
        if self.pk is None:
            return None
        return TimeSlot.objects.filter(appointment=self).first()
