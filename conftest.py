import pytest
from datetime import date, time
from rest_framework.test import APIClient


# A Monday
MONDAY = date(2025, 6, 2)


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_user(db):
    from accounts.models import User

    return User.objects.create_user(
        email='owner@test.com',
        password='testpass123',
        first_name='Test',
        last_name='Owner',
        user_type='client'
    )


@pytest.fixture
def second_client_user(db):
    """Second owner for visibility tests"""
    from accounts.models import User

    return User.objects.create_user(
        email='owner2@test.com',
        password='testpass123',
        first_name='Second',
        last_name='Owner',
        user_type='client'
    )


@pytest.fixture
def registrar_user(db):
    from accounts.models import User

    return User.objects.create_user(
        email='registrar@test.com',
        password='testpass123',
        first_name='Test',
        last_name='Registrar',
        user_type='registrar'
    )


@pytest.fixture
def specialization(db):
    from doctors.models import Specialization

    spec, _ = Specialization.objects.get_or_create(
        name='Therapy',
        defaults={'description': 'General veterinary care'}
    )
    return spec


@pytest.fixture
def service(db, specialization):
    from doctors.models import Service

    return Service.objects.create(
        code='OC1',
        name='Primary online consultation',
        specialization=specialization,
        duration_minutes=60
    )


@pytest.fixture
def vet_user(db, specialization):
    from accounts.models import User, DoctorProfile

    user = User.objects.create_user(
        email='vet@test.com',
        password='testpass123',
        first_name='Test',
        last_name='Vet',
        user_type='vet'
    )
    DoctorProfile.objects.create(user=user, specialization=specialization)
    return user


@pytest.fixture
def doctor_profile(vet_user):
    """Returns the DoctorProfile, not the User"""
    return vet_user.doctor_profile


@pytest.fixture
def second_doctor(db):
    from accounts.models import User, DoctorProfile

    user = User.objects.create_user(
        email='vet2@test.com',
        password='testpass123',
        first_name='Other',
        last_name='Vet',
        user_type='vet'
    )
    return DoctorProfile.objects.create(user=user)


@pytest.fixture
def available_slot(db, doctor_profile):
    from doctors.models import TimeSlot

    return TimeSlot.objects.create(
        doctor=doctor_profile,
        date=MONDAY,
        start_time=time(10, 0),
        end_time=time(11, 0),
        status=TimeSlot.Status.AVAILABLE
    )


@pytest.fixture
def second_slot(db, doctor_profile):
    from doctors.models import TimeSlot

    return TimeSlot.objects.create(
        doctor=doctor_profile,
        date=MONDAY,
        start_time=time(11, 0),
        end_time=time(12, 0),
        status=TimeSlot.Status.AVAILABLE
    )


@pytest.fixture
def requested_appointment(db, client_user):
    from appointments.lifecycle import create_appointment

    return create_appointment(
        owner=client_user,
        pet_name='Barsik',
        pet_species='cat',
        complaint='Not eating'
    )


@pytest.fixture
def booked_appointment(requested_appointment, available_slot):
    """Requested appointment holding `available_slot`"""
    from appointments.lifecycle import bind_slot

    return bind_slot(requested_appointment.pk, available_slot.pk)


@pytest.fixture
def authenticated_client(api_client, client_user):
    api_client.force_authenticate(user=client_user)
    return api_client


@pytest.fixture
def authenticated_registrar(api_client, registrar_user):
    api_client.force_authenticate(user=registrar_user)
    return api_client


@pytest.fixture
def authenticated_vet(api_client, vet_user):
    api_client.force_authenticate(user=vet_user)
    return api_client
