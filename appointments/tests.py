import pytest
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from io import StringIO

from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone
from rest_framework import status

from appointments import lifecycle
from appointments.models import Appointment
from appointments.queries import (
    appointments_by_specialization,
    group_slots_by_date,
    list_appointments,
    list_slots,
    pending_requests,
    period_window,
    status_counts,
    week_start,
    weekly_grid,
)
from config.exceptions import InvalidInput, InvalidTransition, NotFound, SlotAlreadyTaken
from doctors import services
from doctors.models import TimeSlot


MONDAY = date(2025, 6, 2)


def at(day, hour, minute=0):
    return timezone.make_aware(datetime.combine(day, time(hour, minute)))


def assert_occupancy_consistent():
    """Busy slots and bound slots are the same set, and no terminal appointment holds one"""
    for slot in TimeSlot.objects.select_related('appointment'):
        assert (slot.status == TimeSlot.Status.BUSY) == (slot.appointment_id is not None)
        if slot.appointment is not None:
            assert not slot.appointment.is_terminal


# ============================================
# APPOINTMENT MODEL TESTS
# ============================================

@pytest.mark.django_db
class TestAppointmentModel:
    """Test Appointment model"""

    def test_appointment_number_format(self, requested_appointment):
        """Verify appointment number format: APT-YYYYMMDD-XXXX"""
        parts = requested_appointment.appointment_number.split('-')

        assert len(parts) == 3
        assert parts[0] == 'APT'
        assert len(parts[1]) == 8
        assert len(parts[2]) == 4

    def test_bound_slot_none_without_slot(self, requested_appointment):
        assert requested_appointment.bound_slot is None

    def test_bound_slot_follows_reservation(self, booked_appointment, available_slot):
        assert booked_appointment.bound_slot == available_slot

    def test_is_terminal(self, requested_appointment):
        assert requested_appointment.is_terminal is False

        requested_appointment.status = Appointment.Status.CANCELLED

        assert requested_appointment.is_terminal is True


# ============================================
# LIFECYCLE TESTS
# ============================================

ALLOWED = {
    ('requested', 'confirmed'),
    ('requested', 'cancelled'),
    ('confirmed', 'completed'),
    ('confirmed', 'cancelled'),
}


@pytest.mark.parametrize('current', Appointment.Status.values)
@pytest.mark.parametrize('target', Appointment.Status.values)
def test_transition_table(current, target):
    assert lifecycle.can_transition(current, target) == ((current, target) in ALLOWED)


@pytest.mark.django_db
class TestCreateAppointment:

    def test_request_has_no_slot(self, client_user, doctor_profile, service):
        appointment = lifecycle.create_appointment(
            owner=client_user,
            pet_name='Barsik',
            desired_doctor=doctor_profile.pk,
            desired_service=service.pk,
        )

        assert appointment.status == Appointment.Status.REQUESTED
        assert appointment.bound_slot is None
        assert appointment.desired_doctor == doctor_profile
        assert appointment.desired_service == service
        # Advisory fields do not assign anything
        assert appointment.doctor is None
        assert appointment.service is None

    def test_unknown_desired_doctor(self, client_user):
        with pytest.raises(NotFound):
            lifecycle.create_appointment(owner=client_user, pet_name='Barsik', desired_doctor=999999)

    def test_staff_appointment_on_slot(self, client_user, doctor_profile, service, available_slot):
        appointment = lifecycle.create_staff_appointment(
            owner=client_user,
            pet_name='Barsik',
            service=service,
            slot=available_slot,
        )

        available_slot.refresh_from_db()
        assert available_slot.appointment_id == appointment.pk
        assert appointment.doctor == doctor_profile
        assert appointment.service == service
        assert appointment.starts_at == at(MONDAY, 10)

    def test_staff_appointment_on_taken_slot_is_not_created(self, client_user, booked_appointment, available_slot):
        before = Appointment.objects.count()

        with pytest.raises(SlotAlreadyTaken):
            lifecycle.create_staff_appointment(owner=client_user, pet_name='Murka', slot=available_slot.pk)

        assert Appointment.objects.count() == before
        available_slot.refresh_from_db()
        assert available_slot.appointment_id == booked_appointment.pk


@pytest.mark.django_db
class TestTransitions:

    def test_confirm_complete_then_cancel_fails(self, requested_appointment):
        confirmed = lifecycle.confirm(requested_appointment.pk)
        assert confirmed.status == Appointment.Status.CONFIRMED
        assert confirmed.confirmed_at is not None

        completed = lifecycle.complete(requested_appointment.pk)
        assert completed.status == Appointment.Status.COMPLETED
        assert completed.completed_at is not None

        with pytest.raises(InvalidTransition):
            lifecycle.cancel(requested_appointment.pk, reason='Too late')

        requested_appointment.refresh_from_db()
        assert requested_appointment.status == Appointment.Status.COMPLETED

    def test_cannot_complete_request(self, requested_appointment):
        with pytest.raises(InvalidTransition):
            lifecycle.complete(requested_appointment.pk)

    def test_cannot_confirm_twice(self, requested_appointment):
        lifecycle.confirm(requested_appointment.pk)

        with pytest.raises(InvalidTransition):
            lifecycle.confirm(requested_appointment.pk)

    def test_cancel_request_records_who_and_why(self, requested_appointment, registrar_user):
        cancelled = lifecycle.cancel(requested_appointment.pk, reason='Owner called', cancelled_by=registrar_user)

        assert cancelled.status == Appointment.Status.CANCELLED
        assert cancelled.cancellation_reason == 'Owner called'
        assert cancelled.cancelled_by == registrar_user
        assert cancelled.cancelled_at is not None

    def test_cancel_confirmed_releases_slot(self, booked_appointment, available_slot):
        lifecycle.confirm(booked_appointment.pk)

        lifecycle.cancel(booked_appointment.pk, reason='Pet recovered')

        available_slot.refresh_from_db()
        assert available_slot.status == TimeSlot.Status.AVAILABLE
        assert available_slot.appointment is None
        assert_occupancy_consistent()

    def test_unknown_appointment(self, db):
        with pytest.raises(NotFound):
            lifecycle.confirm(999999)


@pytest.mark.django_db
class TestBindSlot:

    def test_bind_sets_schedule_from_slot(self, requested_appointment, doctor_profile, service):
        slot = services.create_slot(doctor_profile, MONDAY, time(14, 0), time(15, 0), service=service)

        appointment = lifecycle.bind_slot(requested_appointment.pk, slot.pk)

        slot.refresh_from_db()
        assert slot.status == TimeSlot.Status.BUSY
        assert slot.appointment_id == appointment.pk
        assert appointment.starts_at == at(MONDAY, 14)
        assert appointment.doctor == doctor_profile
        assert appointment.service == service

    def test_slot_doctor_overrides_assigned_doctor(self, requested_appointment, second_doctor, available_slot):
        lifecycle.assign_doctor_and_service(requested_appointment.pk, second_doctor, None)

        appointment = lifecycle.bind_slot(requested_appointment.pk, available_slot.pk)

        assert appointment.doctor == available_slot.doctor

    def test_assigned_service_is_kept(self, requested_appointment, doctor_profile, service, specialization):
        from doctors.models import Service

        other = Service.objects.create(code='OC2', name='Follow-up', specialization=specialization)
        slot = services.create_slot(doctor_profile, MONDAY, time(14, 0), time(15, 0), service=other)
        lifecycle.assign_doctor_and_service(requested_appointment.pk, doctor_profile, service)

        appointment = lifecycle.bind_slot(requested_appointment.pk, slot.pk)

        assert appointment.service == service

    def test_taken_slot_leaves_everything_unchanged(self, booked_appointment, available_slot, client_user):
        other = lifecycle.create_appointment(owner=client_user, pet_name='Murka')

        with pytest.raises(SlotAlreadyTaken):
            lifecycle.bind_slot(other.pk, available_slot.pk)

        other.refresh_from_db()
        assert other.starts_at is None
        assert other.doctor is None
        assert other.bound_slot is None
        available_slot.refresh_from_db()
        assert available_slot.appointment_id == booked_appointment.pk

    def test_rebinding_releases_previous_slot(self, booked_appointment, available_slot, second_slot):
        appointment = lifecycle.bind_slot(booked_appointment.pk, second_slot.pk)

        available_slot.refresh_from_db()
        second_slot.refresh_from_db()
        assert available_slot.status == TimeSlot.Status.AVAILABLE
        assert second_slot.appointment_id == appointment.pk
        assert appointment.starts_at == at(MONDAY, 11)
        assert_occupancy_consistent()

    def test_failed_rebinding_keeps_previous_slot(self, booked_appointment, available_slot, second_slot, client_user):
        other = lifecycle.create_appointment(owner=client_user, pet_name='Murka')
        lifecycle.bind_slot(other.pk, second_slot.pk)

        with pytest.raises(SlotAlreadyTaken):
            lifecycle.bind_slot(booked_appointment.pk, second_slot.pk)

        available_slot.refresh_from_db()
        assert available_slot.appointment_id == booked_appointment.pk
        assert_occupancy_consistent()

    def test_binding_same_slot_again_is_noop(self, booked_appointment, available_slot):
        appointment = lifecycle.bind_slot(booked_appointment.pk, available_slot.pk)

        assert appointment.bound_slot == available_slot

    def test_unavailable_slot(self, requested_appointment, available_slot):
        services.set_slot_unavailable(available_slot.pk)

        with pytest.raises(SlotAlreadyTaken):
            lifecycle.bind_slot(requested_appointment.pk, available_slot.pk)

    def test_cannot_bind_cancelled_appointment(self, requested_appointment, available_slot):
        lifecycle.cancel(requested_appointment.pk, reason='Duplicate')

        with pytest.raises(InvalidTransition):
            lifecycle.bind_slot(requested_appointment.pk, available_slot.pk)

        available_slot.refresh_from_db()
        assert available_slot.is_available


@pytest.mark.django_db
class TestAssignAndSchedule:

    def test_assign_keeps_desired_values(self, client_user, doctor_profile, second_doctor, service):
        appointment = lifecycle.create_appointment(owner=client_user, pet_name='Barsik', desired_doctor=doctor_profile)

        appointment = lifecycle.assign_doctor_and_service(appointment.pk, second_doctor.pk, service.pk)

        assert appointment.doctor == second_doctor
        assert appointment.service == service
        assert appointment.desired_doctor == doctor_profile

    def test_assign_on_completed_appointment(self, requested_appointment, doctor_profile):
        lifecycle.confirm(requested_appointment.pk)
        lifecycle.complete(requested_appointment.pk)

        with pytest.raises(InvalidTransition):
            lifecycle.assign_doctor_and_service(requested_appointment.pk, doctor_profile, None)

    def test_set_start_time_makes_naive_aware(self, requested_appointment):
        appointment = lifecycle.set_start_time(requested_appointment.pk, datetime(2025, 6, 3, 15, 30))

        assert timezone.is_aware(appointment.starts_at)
        assert appointment.starts_at == at(date(2025, 6, 3), 15, 30)

    def test_set_start_time_with_bound_slot(self, booked_appointment):
        with pytest.raises(InvalidInput):
            lifecycle.set_start_time(booked_appointment.pk, at(MONDAY, 15))


@pytest.mark.django_db
def test_occupancy_stays_consistent_through_a_busy_day(client_user, doctor_profile, second_slot, available_slot):
    first = lifecycle.create_appointment(owner=client_user, pet_name='Barsik')
    second = lifecycle.create_appointment(owner=client_user, pet_name='Murka')

    lifecycle.bind_slot(first.pk, available_slot.pk)
    assert_occupancy_consistent()
    with pytest.raises(SlotAlreadyTaken):
        lifecycle.bind_slot(second.pk, available_slot.pk)
    lifecycle.bind_slot(second.pk, second_slot.pk)
    assert_occupancy_consistent()
    lifecycle.confirm(first.pk)
    lifecycle.cancel(second.pk, reason='Owner called')
    assert_occupancy_consistent()
    lifecycle.bind_slot(first.pk, second_slot.pk)
    assert_occupancy_consistent()

    assert TimeSlot.objects.filter(status=TimeSlot.Status.BUSY).count() == 1


# ============================================
# QUERY TESTS
# ============================================

class TestPeriods:

    def test_period_window(self):
        assert period_window('today', today=MONDAY) == (MONDAY, MONDAY)
        assert period_window('7', today=MONDAY) == (MONDAY, MONDAY + timedelta(days=7))
        assert period_window(30, today=MONDAY) == (MONDAY, MONDAY + timedelta(days=30))
        assert period_window('all', today=MONDAY) == (None, None)

    def test_unknown_period(self):
        with pytest.raises(InvalidInput):
            period_window('week', today=MONDAY)

    def test_week_start(self):
        assert week_start(date(2025, 6, 5)) == MONDAY
        assert week_start(date(2025, 6, 8)) == MONDAY
        assert week_start(MONDAY) == MONDAY
        assert week_start(datetime(2025, 6, 4, 12, 0, tzinfo=dt_timezone.utc)) == MONDAY


@pytest.mark.django_db
class TestScheduleQueries:

    def test_list_slots_by_status(self, doctor_profile, available_slot, second_slot):
        services.set_slot_unavailable(second_slot.pk)

        assert list(list_slots(doctor_profile, status='available')) == [available_slot]
        assert list(list_slots(doctor_profile.pk)) == [available_slot, second_slot]

    def test_list_slots_unknown_status(self, doctor_profile):
        with pytest.raises(InvalidInput):
            list_slots(doctor_profile, status='booked')

    def test_group_slots_by_date(self, doctor_profile, available_slot, second_slot):
        tuesday = services.create_slot(doctor_profile, MONDAY + timedelta(days=1), time(9, 0), time(10, 0))

        grouped = group_slots_by_date([tuesday, second_slot, available_slot])

        assert list(grouped) == [MONDAY, tuesday.date]
        assert grouped[MONDAY] == [available_slot, second_slot]

    def test_list_appointments_by_date(self, client_user, booked_appointment):
        unscheduled = lifecycle.create_appointment(owner=client_user, pet_name='Murka')

        on_monday = list(list_appointments(date_from=MONDAY, date_to=MONDAY))

        assert on_monday == [booked_appointment]
        assert unscheduled not in on_monday
        assert list(list_appointments(date_from=MONDAY + timedelta(days=1))) == []

    def test_list_appointments_by_status_and_doctor(self, booked_appointment, doctor_profile, second_doctor):
        lifecycle.confirm(booked_appointment.pk)

        assert list(list_appointments(status='confirmed', doctor=doctor_profile)) == [booked_appointment]
        assert list(list_appointments(doctor=second_doctor)) == []
        assert list(list_appointments(status='requested')) == []

    def test_list_appointments_unknown_status(self, db):
        with pytest.raises(InvalidInput):
            list_appointments(status='pending')

    def test_pending_requests_oldest_first(self, client_user, requested_appointment):
        newer = lifecycle.create_appointment(owner=client_user, pet_name='Murka')
        confirmed = lifecycle.create_appointment(owner=client_user, pet_name='Sharik')
        lifecycle.confirm(confirmed.pk)

        assert list(pending_requests()) == [requested_appointment, newer]

    def test_weekly_grid_buckets(self, client_user, requested_appointment):
        wednesday = lifecycle.create_appointment(owner=client_user, pet_name='Murka')
        next_week = lifecycle.create_appointment(owner=client_user, pet_name='Sharik')
        lifecycle.set_start_time(requested_appointment.pk, at(MONDAY, 10))
        lifecycle.set_start_time(wednesday.pk, at(MONDAY + timedelta(days=2), 14, 30))
        lifecycle.set_start_time(next_week.pk, at(MONDAY + timedelta(days=7), 10))

        grid = weekly_grid(date(2025, 6, 4))

        assert set(grid) == {(0, 10), (2, 14)}
        assert grid[(2, 14)] == [wednesday]

    def test_weekly_grid_for_one_doctor(self, booked_appointment, client_user, second_doctor):
        other = lifecycle.create_staff_appointment(owner=client_user, pet_name='Murka', doctor=second_doctor)
        lifecycle.set_start_time(other.pk, at(MONDAY, 10))

        grid = weekly_grid(MONDAY, doctor=booked_appointment.doctor)

        assert grid == {(0, 10): [booked_appointment]}

    def test_appointments_by_specialization(self, client_user, booked_appointment):
        lifecycle.create_appointment(owner=client_user, pet_name='Murka')

        grouped = appointments_by_specialization()

        assert set(grouped) == {'Therapy', 'Unassigned'}
        assert grouped['Therapy'] == [booked_appointment]

    def test_status_counts(self, booked_appointment, second_slot):
        counts = status_counts()

        assert counts['slots'] == {'available': 1, 'busy': 1, 'unavailable': 0}
        assert counts['appointments'] == {'requested': 1, 'confirmed': 0, 'completed': 0, 'cancelled': 0}


# ============================================
# API TESTS
# ============================================

@pytest.mark.django_db
class TestClientRequestAPI:

    def test_client_requests_consultation(self, authenticated_client, doctor_profile, service):
        response = authenticated_client.post(reverse('request-appointment'), {
            'pet_name': 'Barsik',
            'pet_species': 'cat',
            'complaint': 'Sneezing',
            'desired_doctor_id': doctor_profile.id,
            'desired_service_id': service.id,
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['appointment']['status'] == 'requested'
        assert response.data['appointment']['slot'] is None
        assert response.data['appointment']['desired_doctor'] == doctor_profile.id
        assert response.data['appointment']['doctor'] is None

    def test_pet_name_required(self, authenticated_client):
        response = authenticated_client.post(reverse('request-appointment'), {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_anonymous_cannot_request(self, api_client):
        response = api_client.post(reverse('request-appointment'), {'pet_name': 'Barsik'}, format='json')

        assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)

    def test_client_sees_only_own_appointments(self, authenticated_client, requested_appointment, second_client_user):
        foreign = lifecycle.create_appointment(owner=second_client_user, pet_name='Murka')

        response = authenticated_client.get(reverse('appointment-list'))

        assert [item['id'] for item in response.data['results']] == [requested_appointment.id]
        detail = authenticated_client.get(reverse('appointment-detail', kwargs={'pk': foreign.pk}))
        assert detail.status_code == status.HTTP_404_NOT_FOUND

    def test_client_cannot_confirm(self, authenticated_client, requested_appointment):
        response = authenticated_client.post(reverse('confirm-appointment', kwargs={'pk': requested_appointment.pk}))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        requested_appointment.refresh_from_db()
        assert requested_appointment.status == Appointment.Status.REQUESTED

    def test_client_queue_is_empty(self, authenticated_client, requested_appointment):
        response = authenticated_client.get(reverse('pending-requests'))

        assert response.data['results'] == []


@pytest.mark.django_db
class TestRegistryAPI:

    def test_pending_requests(self, authenticated_registrar, requested_appointment):
        response = authenticated_registrar.get(reverse('pending-requests'))

        assert response.status_code == status.HTTP_200_OK
        assert [item['id'] for item in response.data['results']] == [requested_appointment.id]

    def test_assign(self, authenticated_registrar, requested_appointment, doctor_profile, service):
        url = reverse('assign-appointment', kwargs={'pk': requested_appointment.pk})

        response = authenticated_registrar.post(url, {
            'doctor_id': doctor_profile.id,
            'service_id': service.id,
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['appointment']['doctor'] == doctor_profile.id
        assert response.data['appointment']['service_name'] == 'Primary online consultation'

    def test_bind_slot(self, authenticated_registrar, requested_appointment, available_slot):
        url = reverse('bind-slot', kwargs={'pk': requested_appointment.pk})

        response = authenticated_registrar.post(url, {'slot_id': available_slot.id}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['appointment']['slot']['id'] == available_slot.id
        assert response.data['appointment']['slot']['status'] == 'busy'

    def test_bind_taken_slot(self, authenticated_registrar, booked_appointment, available_slot, client_user):
        other = lifecycle.create_appointment(owner=client_user, pet_name='Murka')
        url = reverse('bind-slot', kwargs={'pk': other.pk})

        response = authenticated_registrar.post(url, {'slot_id': available_slot.id}, format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['error']['code'] == 'slot_already_taken'

    def test_bind_missing_slot(self, authenticated_registrar, requested_appointment):
        url = reverse('bind-slot', kwargs={'pk': requested_appointment.pk})

        response = authenticated_registrar.post(url, {'slot_id': 999999}, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_schedule_by_hand(self, authenticated_registrar, requested_appointment):
        url = reverse('schedule-appointment', kwargs={'pk': requested_appointment.pk})

        response = authenticated_registrar.post(url, {'starts_at': '2025-06-04T15:00:00Z'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        requested_appointment.refresh_from_db()
        assert requested_appointment.starts_at == at(date(2025, 6, 4), 15)

    def test_confirm_and_invalid_second_confirm(self, authenticated_registrar, requested_appointment):
        url = reverse('confirm-appointment', kwargs={'pk': requested_appointment.pk})

        assert authenticated_registrar.post(url).status_code == status.HTTP_200_OK

        response = authenticated_registrar.post(url)
        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['error']['code'] == 'invalid_transition'

    def test_cancel_requires_reason(self, authenticated_registrar, booked_appointment):
        url = reverse('cancel-appointment', kwargs={'pk': booked_appointment.pk})

        response = authenticated_registrar.post(url, {'cancellation_reason': '  '}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert booked_appointment.bound_slot is not None

    def test_cancel_releases_slot(self, authenticated_registrar, registrar_user, booked_appointment, available_slot):
        url = reverse('cancel-appointment', kwargs={'pk': booked_appointment.pk})

        response = authenticated_registrar.post(url, {'cancellation_reason': 'Owner called'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['appointment']['status'] == 'cancelled'
        assert response.data['appointment']['slot'] is None
        available_slot.refresh_from_db()
        assert available_slot.is_available
        booked_appointment.refresh_from_db()
        assert booked_appointment.cancelled_by == registrar_user

    def test_staff_create_on_slot(self, authenticated_registrar, client_user, available_slot):
        response = authenticated_registrar.post(reverse('staff-create-appointment'), {
            'owner_id': client_user.id,
            'pet_name': 'Barsik',
            'slot_id': available_slot.id,
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        available_slot.refresh_from_db()
        assert available_slot.appointment_id == response.data['appointment']['id']

    def test_staff_create_slot_and_time_together(self, authenticated_registrar, client_user, available_slot):
        response = authenticated_registrar.post(reverse('staff-create-appointment'), {
            'owner_id': client_user.id,
            'pet_name': 'Barsik',
            'slot_id': available_slot.id,
            'starts_at': '2025-06-02T10:00:00Z',
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert not Appointment.objects.exists()

    def test_staff_create_unknown_owner(self, authenticated_registrar):
        response = authenticated_registrar.post(reverse('staff-create-appointment'), {
            'owner_id': 999999,
            'pet_name': 'Barsik',
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_client_cannot_staff_create(self, authenticated_client, client_user):
        response = authenticated_client.post(reverse('staff-create-appointment'), {
            'owner_id': client_user.id,
            'pet_name': 'Barsik',
        }, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_list_filters(self, authenticated_registrar, booked_appointment, client_user):
        lifecycle.create_appointment(owner=client_user, pet_name='Murka')

        response = authenticated_registrar.get(reverse('appointment-list'), {
            'date_from': '2025-06-02',
            'date_to': '2025-06-02',
            'status': 'requested',
        })

        assert [item['id'] for item in response.data['results']] == [booked_appointment.id]


@pytest.mark.django_db
class TestVetAPI:

    def test_assigned_vet_completes(self, api_client, vet_user, booked_appointment):
        lifecycle.confirm(booked_appointment.pk)
        api_client.force_authenticate(user=vet_user)

        response = api_client.post(reverse('complete-appointment', kwargs={'pk': booked_appointment.pk}))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['appointment']['status'] == 'completed'

    def test_other_vet_cannot_see_appointment(self, api_client, second_doctor, booked_appointment):
        lifecycle.confirm(booked_appointment.pk)
        api_client.force_authenticate(user=second_doctor.user)

        response = api_client.post(reverse('complete-appointment', kwargs={'pk': booked_appointment.pk}))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_vet_cannot_confirm(self, authenticated_vet, booked_appointment):
        response = authenticated_vet.post(reverse('confirm-appointment', kwargs={'pk': booked_appointment.pk}))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_vet_calendar_shows_own_appointments(self, authenticated_vet, booked_appointment, client_user, second_doctor):
        other = lifecycle.create_staff_appointment(owner=client_user, pet_name='Murka', doctor=second_doctor)
        lifecycle.set_start_time(other.pk, at(MONDAY, 12))

        response = authenticated_vet.get(reverse('weekly-calendar'), {'week': '2025-06-04'})

        assert response.status_code == status.HTTP_200_OK
        ids = [item['id'] for cell in response.data['cells'] for item in cell['appointments']]
        assert ids == [booked_appointment.id]


@pytest.mark.django_db
class TestWeeklyCalendarAPI:

    def test_calendar(self, authenticated_registrar, booked_appointment):
        response = authenticated_registrar.get(reverse('weekly-calendar'), {'week': '2025-06-04'})

        assert response.status_code == status.HTTP_200_OK
        assert response.data['week_start'] == MONDAY
        assert response.data['hours'] == list(range(9, 22))
        assert response.data['cells'][0]['day_index'] == 0
        assert response.data['cells'][0]['hour'] == 10
        assert response.data['cells'][0]['appointments'][0]['id'] == booked_appointment.id

    def test_bad_week(self, authenticated_registrar):
        response = authenticated_registrar.get(reverse('weekly-calendar'), {'week': '04.06.2025'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_clients_have_no_calendar(self, authenticated_client):
        response = authenticated_client.get(reverse('weekly-calendar'))

        assert response.status_code == status.HTTP_403_FORBIDDEN


# ============================================
# MANAGEMENT COMMAND TESTS
# ============================================

@pytest.mark.django_db
def test_show_stats(booked_appointment, second_slot):
    out = StringIO()

    call_command('show_stats', stdout=out)

    output = out.getvalue()
    assert 'SCHEDULE STATISTICS' in output
    assert 'Busy: 1' in output
    assert 'Requested: 1' in output
    assert 'Waiting for the registry: 1' in output
    assert 'Dr. Test Vet: 1' in output
    assert 'Therapy: 1' in output
