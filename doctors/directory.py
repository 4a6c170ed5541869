"""Read-only lookups of doctors and services used by the scheduling engine."""
from accounts.models import DoctorProfile
from config.exceptions import NotFound
from .models import Service


def get_doctor(doctor):
    """Return a DoctorProfile for an instance or primary key."""
    if isinstance(doctor, DoctorProfile):
        return doctor
    try:
        return DoctorProfile.objects.select_related('user', 'specialization').get(pk=doctor)
    except (DoctorProfile.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Doctor {doctor} not found.")


def get_service(service):
    if service is None or isinstance(service, Service):
        return service
    try:
        return Service.objects.get(pk=service)
    except (Service.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Service {service} not found.")


def doctor_labels(doctor_ids):
    """Map doctor ids to display names."""
    doctors = DoctorProfile.objects.filter(pk__in=set(doctor_ids)).select_related('user')
    return {doctor.pk: doctor.display_name for doctor in doctors}


def specialization_label(doctor):
    if doctor is None or doctor.specialization is None:
        return 'Unassigned'
    return doctor.specialization.name
