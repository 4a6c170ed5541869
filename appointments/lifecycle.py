"""
Appointment status lifecycle.

    requested -> confirmed -> completed
    requested -> cancelled
    confirmed -> cancelled

Every transition runs in a transaction with the appointment row locked, so
the status change and the slot reservation or release it implies commit
together.
"""
import logging
from datetime import datetime

from django.db import transaction
from django.utils import timezone

from config.exceptions import Conflict, InvalidInput, InvalidTransition, NotFound, SlotAlreadyTaken
from doctors.directory import get_doctor, get_service
from doctors.models import TimeSlot
from doctors.services import release_slot, reserve_slot
from .models import Appointment

logger = logging.getLogger(__name__)

Status = Appointment.Status

TRANSITIONS = {
    Status.REQUESTED: frozenset({Status.CONFIRMED, Status.CANCELLED}),
    Status.CONFIRMED: frozenset({Status.COMPLETED, Status.CANCELLED}),
    Status.COMPLETED: frozenset(),
    Status.CANCELLED: frozenset(),
}


def can_transition(current, target):
    return Status(target) in TRANSITIONS[Status(current)]


def _lock(appointment_id):
    try:
        return Appointment.objects.select_for_update().get(pk=appointment_id)
    except (Appointment.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Appointment {appointment_id} not found.")


def _ensure_transition(appointment, target):
    if not can_transition(appointment.status, target):
        logger.warning(
            "Rejected %s -> %s for appointment %s",
            appointment.status, target, appointment.pk
        )
        raise InvalidTransition(
            f"Cannot move appointment {appointment.appointment_number} "
            f"from {appointment.status} to {target}."
        )


def _ensure_open(appointment):
    if appointment.is_terminal:
        raise InvalidTransition(
            f"Appointment {appointment.appointment_number} is {appointment.status} and can no longer be changed."
        )


def _slot_start(slot):
    return timezone.make_aware(datetime.combine(slot.date, slot.start_time))


def create_appointment(owner, pet_name='', pet_species='', desired_service=None,
                       desired_doctor=None, complaint='', starts_at=None):
    """Intake: a new request with no slot. Desired doctor/service are advisory."""
    appointment = Appointment.objects.create(
        owner=owner,
        pet_name=pet_name,
        pet_species=pet_species,
        complaint=complaint,
        desired_doctor=get_doctor(desired_doctor) if desired_doctor else None,
        desired_service=get_service(desired_service),
        starts_at=starts_at,
        status=Status.REQUESTED,
    )
    logger.info("Appointment %s requested by %s", appointment.appointment_number, owner.pk)
    return appointment


def create_staff_appointment(owner, pet_name='', pet_species='', doctor=None, service=None,
                             complaint='', starts_at=None, slot=None):
    """
    Staff flow: create a request with the clinic's doctor and service already
    assigned, optionally holding a slot right away. If the slot is taken the
    appointment is not created either.
    """
    with transaction.atomic():
        appointment = Appointment.objects.create(
            owner=owner,
            pet_name=pet_name,
            pet_species=pet_species,
            complaint=complaint,
            doctor=get_doctor(doctor) if doctor else None,
            service=get_service(service),
            starts_at=starts_at,
            status=Status.REQUESTED,
        )
        if slot is not None:
            appointment = bind_slot(appointment.pk, getattr(slot, 'pk', slot))
    return appointment


def assign_doctor_and_service(appointment_id, doctor, service):
    with transaction.atomic():
        appointment = _lock(appointment_id)
        _ensure_open(appointment)
        appointment.doctor = get_doctor(doctor) if doctor else None
        appointment.service = get_service(service)
        appointment.save(update_fields=['doctor', 'service', 'updated_at'])
    logger.info(
        "Appointment %s assigned to doctor %s, service %s",
        appointment.pk, appointment.doctor_id, appointment.service_id
    )
    return appointment


def bind_slot(appointment_id, slot_id):
    """
    Hold `slot_id` for the appointment. A previously bound slot is released in
    the same transaction; if the new slot is taken nothing changes.
    """
    with transaction.atomic():
        appointment = _lock(appointment_id)
        _ensure_open(appointment)

        slot_id = getattr(slot_id, 'pk', slot_id)
        previous = appointment.bound_slot
        if previous is not None and str(previous.pk) == str(slot_id):
            return appointment
        if previous is not None:
            release_slot(previous.pk)

        try:
            reserve_slot(slot_id, appointment.pk)
        except Conflict:
            raise SlotAlreadyTaken(f"Slot {slot_id} was just taken, pick another one.")

        slot = TimeSlot.objects.select_related('doctor', 'service').get(pk=slot_id)
        appointment.starts_at = _slot_start(slot)
        appointment.doctor = slot.doctor
        if appointment.service_id is None and slot.service_id is not None:
            appointment.service = slot.service
        appointment.save(update_fields=['starts_at', 'doctor', 'service', 'updated_at'])

    logger.info("Appointment %s bound to slot %s", appointment.pk, slot_id)
    return appointment


def set_start_time(appointment_id, starts_at):
    """Schedule by hand, without a formal slot."""
    with transaction.atomic():
        appointment = _lock(appointment_id)
        _ensure_open(appointment)
        if appointment.bound_slot is not None:
            raise InvalidInput('The start time follows the bound slot; bind another slot instead.')
        if timezone.is_naive(starts_at):
            starts_at = timezone.make_aware(starts_at)
        appointment.starts_at = starts_at
        appointment.save(update_fields=['starts_at', 'updated_at'])
    return appointment


def confirm(appointment_id):
    with transaction.atomic():
        appointment = _lock(appointment_id)
        _ensure_transition(appointment, Status.CONFIRMED)
        appointment.status = Status.CONFIRMED
        appointment.confirmed_at = timezone.now()
        appointment.save(update_fields=['status', 'confirmed_at', 'updated_at'])
    logger.info("Appointment %s confirmed", appointment.pk)
    return appointment


def cancel(appointment_id, reason='', cancelled_by=None):
    with transaction.atomic():
        appointment = _lock(appointment_id)
        _ensure_transition(appointment, Status.CANCELLED)

        slot = appointment.bound_slot
        if slot is not None:
            release_slot(slot.pk)

        appointment.status = Status.CANCELLED
        appointment.cancellation_reason = reason
        appointment.cancelled_by = cancelled_by
        appointment.cancelled_at = timezone.now()
        appointment.save(update_fields=[
            'status', 'cancellation_reason', 'cancelled_by', 'cancelled_at', 'updated_at'
        ])
    logger.info("Appointment %s cancelled", appointment.pk)
    return appointment


def complete(appointment_id):
    with transaction.atomic():
        appointment = _lock(appointment_id)
        _ensure_transition(appointment, Status.COMPLETED)
        appointment.status = Status.COMPLETED
        appointment.completed_at = timezone.now()
        appointment.save(update_fields=['status', 'completed_at', 'updated_at'])
    logger.info("Appointment %s completed", appointment.pk)
    return appointment
