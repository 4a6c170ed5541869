import logging
from dataclasses import dataclass, field
from typing import List, Optional

from django.db import transaction
from django.db.models import Exists
from django.utils import timezone

from accounts.models import DoctorProfile
from config.exceptions import Conflict, InvalidInput, NotFound, SchedulingError, SlotBusy
from .directory import get_doctor, get_service
from .generator import generate
from .models import TimeSlot

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Outcome of a bulk generation run. Slots created before a failure are kept."""

    created: int = 0
    failed: int = 0
    first_error: Optional[SchedulingError] = None
    slots: List[TimeSlot] = field(default_factory=list)

    @property
    def complete(self):
        return self.failed == 0

    def as_dict(self):
        return {
            'created': self.created,
            'failed': self.failed,
            'first_error': str(self.first_error.detail) if self.first_error else None,
        }


def create_slot(doctor, date, start_time, end_time, service=None):
    """
    Create one available slot, rejecting inverted ranges and overlaps with the
    doctor's other slots on the same date.
    """
    if start_time >= end_time:
        raise InvalidInput('Slot start time must be earlier than its end time.')

    doctor = get_doctor(doctor)
    service = get_service(service)

    with transaction.atomic():
        # Lock the doctor row so overlap checks for the same doctor run one at a time
        DoctorProfile.objects.select_for_update().get(pk=doctor.pk)

        clash = find_overlap(doctor, date, start_time, end_time)
        if clash:
            logger.warning(
                "Rejected slot %s %s-%s for doctor %s: overlaps slot %s",
                date, start_time, end_time, doctor.pk, clash.pk
            )
            raise Conflict(
                f"{date} {start_time:%H:%M}-{end_time:%H:%M} overlaps an existing slot "
                f"({clash.start_time:%H:%M}-{clash.end_time:%H:%M})."
            )

        slot = TimeSlot.objects.create(
            doctor=doctor,
            date=date,
            start_time=start_time,
            end_time=end_time,
            service=service,
            status=TimeSlot.Status.AVAILABLE,
        )

    logger.info("Created slot %s for doctor %s", slot.pk, doctor.pk)
    return slot


def find_overlap(doctor, date, start_time, end_time):
    """First slot of `doctor` on `date` whose half-open range meets [start_time, end_time)."""
    return TimeSlot.objects.filter(
        doctor=doctor,
        date=date,
        start_time__lt=end_time,
        end_time__gt=start_time,
    ).order_by("start_time").first()


def reserve_slot(slot_id, appointment_id):
    """
    Atomically flip an available slot to busy and bind it to the appointment.

    An appointment holds at most one slot, so the update also requires that
    no other slot is bound to it.
    """
    updated = TimeSlot.objects.filter(
        ~Exists(TimeSlot.objects.filter(appointment_id=appointment_id)),
        pk=slot_id,
        status=TimeSlot.Status.AVAILABLE,
        appointment__isnull=True,
    ).update(
        status=TimeSlot.Status.BUSY,
        appointment_id=appointment_id,
        updated_at=timezone.now(),
    )
    if updated:
        logger.info("Reserved slot %s for appointment %s", slot_id, appointment_id)
        return

    if not TimeSlot.objects.filter(pk=slot_id).exists():
        raise NotFound(f"Slot {slot_id} not found.")
    held = TimeSlot.objects.filter(appointment_id=appointment_id).values_list("pk", flat=True).first()
    if held is not None and str(held) != str(slot_id):
        logger.warning("Appointment %s already holds slot %s, refused slot %s", appointment_id, held, slot_id)
        raise Conflict(f"Appointment {appointment_id} already holds slot {held}.")
    logger.warning("Slot %s is not available for appointment %s", slot_id, appointment_id)
    raise Conflict(f"Slot {slot_id} is not available.")


def release_slot(slot_id):
    """Free a busy slot. Releasing a slot that holds no appointment does nothing."""
    updated = TimeSlot.objects.filter(
        pk=slot_id,
        status=TimeSlot.Status.BUSY,
    ).update(
        status=TimeSlot.Status.AVAILABLE,
        appointment=None,
        updated_at=timezone.now(),
    )
    if updated:
        logger.info("Released slot %s", slot_id)
    elif not TimeSlot.objects.filter(pk=slot_id).exists():
        raise NotFound(f"Slot {slot_id} not found.")


def delete_slot(slot_id):
    deleted, _ = TimeSlot.objects.filter(pk=slot_id).exclude(status=TimeSlot.Status.BUSY).delete()
    if deleted:
        logger.info("Deleted slot %s", slot_id)
        return

    if TimeSlot.objects.filter(pk=slot_id).exists():
        raise SlotBusy(f"Slot {slot_id} is booked; cancel or move the appointment first.")
    raise NotFound(f"Slot {slot_id} not found.")


def bulk_delete_available(doctor=None, date_from=None, date_to=None):
    """
    Delete available slots inside the optional inclusive date window.

    Busy and unavailable slots are never touched. `doctor=None` covers every
    doctor. Returns the number of slots removed.
    """
    queryset = TimeSlot.objects.filter(status=TimeSlot.Status.AVAILABLE)
    if doctor is not None:
        queryset = queryset.filter(doctor=get_doctor(doctor))
    if date_from:
        queryset = queryset.filter(date__gte=date_from)
    if date_to:
        queryset = queryset.filter(date__lte=date_to)

    _, per_model = queryset.delete()
    count = per_model.get(TimeSlot._meta.label, 0)
    logger.info(
        "Bulk deleted %s available slots (doctor=%s, from=%s, to=%s)",
        count, getattr(doctor, 'pk', doctor), date_from, date_to
    )
    return count


def set_slot_unavailable(slot_id):
    _toggle_availability(slot_id, TimeSlot.Status.AVAILABLE, TimeSlot.Status.UNAVAILABLE)


def set_slot_available(slot_id):
    _toggle_availability(slot_id, TimeSlot.Status.UNAVAILABLE, TimeSlot.Status.AVAILABLE)


def _toggle_availability(slot_id, from_status, to_status):
    updated = TimeSlot.objects.filter(pk=slot_id, status=from_status).update(
        status=to_status,
        updated_at=timezone.now(),
    )
    if updated:
        logger.info("Slot %s marked %s", slot_id, to_status)
        return

    slot = TimeSlot.objects.filter(pk=slot_id).first()
    if slot is None:
        raise NotFound(f"Slot {slot_id} not found.")
    if slot.status == TimeSlot.Status.BUSY:
        raise SlotBusy(f"Slot {slot_id} is booked.")
    # Already in the requested state


def generate_slots(spec):
    """
    Persist every candidate of `spec`, one `create_slot` call each.

    A candidate that cannot be created (typically an overlap with a slot made
    by hand) is counted and skipped; the first failure is kept for the caller.
    """
    if spec.doctor is None:
        raise InvalidInput('A doctor is required to generate slots.')

    doctor = get_doctor(spec.doctor)
    service = get_service(spec.service)

    result = GenerationResult()
    for candidate in generate(spec):
        try:
            slot = create_slot(
                doctor,
                candidate.date,
                candidate.start_time,
                candidate.end_time,
                service=service,
            )
        except (InvalidInput, Conflict) as exc:
            result.failed += 1
            if result.first_error is None:
                result.first_error = exc
            continue
        result.created += 1
        result.slots.append(slot)

    logger.info(
        "Generated %s slots for doctor %s (%s failed)",
        result.created, doctor.pk, result.failed
    )
    return result
