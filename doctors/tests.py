import threading

import pytest
from datetime import date, time, timedelta
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import IntegrityError, connection, transaction
from django.test.utils import CaptureQueriesContext
from django.urls import reverse
from django.utils import timezone
from rest_framework import status

from accounts.models import User
from appointments.lifecycle import create_appointment
from config.exceptions import Conflict, InvalidInput, NotFound, SlotBusy
from doctors import services
from doctors.generator import (
    Candidate, RecurrenceSpec, WORKING_DAYS, auto_week_spec, generate, parse_weekdays,
)
from doctors.models import TimeSlot
from doctors.serializers import GenerateSlotsSerializer


MONDAY = date(2025, 6, 2)


def make_spec(**overrides):
    values = {
        'date_from': MONDAY,
        'date_to': MONDAY,
        'time_from': time(10, 0),
        'time_to': time(12, 0),
        'step_minutes': 60,
        'weekdays': frozenset({'mon'}),
    }
    values.update(overrides)
    return RecurrenceSpec(**values)


# ============================================
# GENERATOR TESTS
# ============================================

class TestGenerator:
    """Expansion of recurrence specs into candidates"""

    def test_single_monday_two_hours(self):
        """10:00-12:00 hourly on one Monday gives two candidates"""
        candidates = list(generate(make_spec()))

        assert candidates == [
            Candidate(MONDAY, time(10, 0), time(11, 0)),
            Candidate(MONDAY, time(11, 0), time(12, 0)),
        ]

    def test_same_spec_same_candidates(self):
        spec = make_spec(date_to=MONDAY + timedelta(days=13), weekdays=WORKING_DAYS, step_minutes=30)

        assert list(generate(spec)) == list(generate(spec))

    def test_partial_step_at_end_of_day_is_dropped(self):
        candidates = list(generate(make_spec(time_to=time(11, 0), step_minutes=40)))

        assert candidates == [Candidate(MONDAY, time(10, 0), time(10, 40))]

    def test_only_selected_weekdays(self):
        spec = make_spec(date_to=MONDAY + timedelta(days=6), weekdays=frozenset({'sat'}))

        dates = {candidate.date for candidate in generate(spec)}

        assert dates == {date(2025, 6, 7)}

    def test_no_matching_weekday_gives_nothing(self):
        assert list(generate(make_spec(weekdays=frozenset({'tue'})))) == []

    def test_candidates_in_date_then_time_order(self):
        spec = make_spec(date_to=MONDAY + timedelta(days=2), weekdays=WORKING_DAYS)

        candidates = list(generate(spec))

        assert candidates == sorted(candidates, key=lambda c: (c.date, c.start_time))
        assert len(candidates) == 6

    @pytest.mark.parametrize('overrides', [
        {'date_from': MONDAY + timedelta(days=1)},
        {'time_from': time(12, 0)},
        {'time_from': time(13, 0)},
        {'step_minutes': 0},
        {'step_minutes': -30},
        {'weekdays': frozenset({'mon', 'xyz'})},
    ])
    def test_invalid_spec_fails_before_iteration(self, overrides):
        with pytest.raises(InvalidInput):
            generate(make_spec(**overrides))

    def test_auto_week_spec(self):
        spec = auto_week_spec(None, MONDAY)

        candidates = list(generate(spec))

        assert spec.date_to == MONDAY + timedelta(days=6)
        # Five working days, 10:00-18:00 hourly
        assert len(candidates) == 40
        assert candidates[0] == Candidate(MONDAY, time(10, 0), time(11, 0))
        assert candidates[-1] == Candidate(date(2025, 6, 6), time(17, 0), time(18, 0))

    def test_auto_week_always_has_five_working_days(self):
        thursday = date(2025, 6, 5)

        dates = {candidate.date for candidate in generate(auto_week_spec(None, thursday))}

        assert len(dates) == 5
        assert all(day.weekday() < 5 for day in dates)

    def test_parse_weekdays(self):
        assert parse_weekdays('Mon, wed,') == frozenset({'mon', 'wed'})
        assert parse_weekdays(['Friday', 'sat']) == frozenset({'fri', 'sat'})


# ============================================
# TIME SLOT MODEL TESTS
# ============================================

@pytest.mark.django_db
class TestTimeSlotModel:
    """Test TimeSlot model"""

    def test_default_status_is_available(self, doctor_profile):
        slot = TimeSlot.objects.create(
            doctor=doctor_profile,
            date=MONDAY,
            start_time=time(9, 0),
            end_time=time(9, 30)
        )

        assert slot.status == TimeSlot.Status.AVAILABLE
        assert slot.is_available is True
        assert slot.appointment is None

    def test_overlaps(self, available_slot):
        assert available_slot.overlaps(time(10, 30), time(11, 30)) is True
        assert available_slot.overlaps(time(9, 0), time(10, 0)) is False
        assert available_slot.overlaps(time(11, 0), time(12, 0)) is False

    def test_busy_without_appointment_rejected_by_database(self, doctor_profile):
        with pytest.raises(IntegrityError), transaction.atomic():
            TimeSlot.objects.create(
                doctor=doctor_profile,
                date=MONDAY,
                start_time=time(9, 0),
                end_time=time(9, 30),
                status=TimeSlot.Status.BUSY
            )

    def test_available_with_appointment_rejected_by_database(self, doctor_profile, requested_appointment):
        with pytest.raises(IntegrityError), transaction.atomic():
            TimeSlot.objects.create(
                doctor=doctor_profile,
                date=MONDAY,
                start_time=time(9, 0),
                end_time=time(9, 30),
                appointment=requested_appointment
            )

    def test_inverted_range_rejected_by_database(self, doctor_profile):
        with pytest.raises(IntegrityError), transaction.atomic():
            TimeSlot.objects.create(
                doctor=doctor_profile,
                date=MONDAY,
                start_time=time(10, 0),
                end_time=time(9, 0)
            )


# ============================================
# SLOT STORE TESTS
# ============================================

@pytest.mark.django_db
class TestCreateSlot:

    def test_create_slot(self, doctor_profile, service):
        slot = services.create_slot(doctor_profile, MONDAY, time(10, 0), time(11, 0), service=service)

        assert slot.pk is not None
        assert slot.status == TimeSlot.Status.AVAILABLE
        assert slot.service == service

    def test_accepts_doctor_id(self, doctor_profile):
        slot = services.create_slot(doctor_profile.pk, MONDAY, time(10, 0), time(11, 0))

        assert slot.doctor == doctor_profile

    def test_overlap_rejected(self, doctor_profile, available_slot):
        with pytest.raises(Conflict):
            services.create_slot(doctor_profile, MONDAY, time(10, 30), time(11, 30))

        assert TimeSlot.objects.filter(doctor=doctor_profile).count() == 1

    def test_contained_slot_rejected(self, doctor_profile, available_slot):
        with pytest.raises(Conflict):
            services.create_slot(doctor_profile, MONDAY, time(10, 15), time(10, 45))

    def test_touching_endpoints_allowed(self, doctor_profile, available_slot):
        before = services.create_slot(doctor_profile, MONDAY, time(9, 0), time(10, 0))
        after = services.create_slot(doctor_profile, MONDAY, time(11, 0), time(12, 0))

        assert before.pk and after.pk

    def test_other_doctor_same_time_allowed(self, second_doctor, available_slot):
        slot = services.create_slot(second_doctor, MONDAY, time(10, 0), time(11, 0))

        assert slot.doctor == second_doctor

    def test_other_date_same_time_allowed(self, doctor_profile, available_slot):
        slot = services.create_slot(doctor_profile, MONDAY + timedelta(days=1), time(10, 0), time(11, 0))

        assert slot.pk is not None

    @pytest.mark.parametrize('start, end', [
        (time(11, 0), time(10, 0)),
        (time(10, 0), time(10, 0)),
    ])
    def test_inverted_or_empty_range_rejected(self, doctor_profile, start, end):
        with pytest.raises(InvalidInput):
            services.create_slot(doctor_profile, MONDAY, start, end)

        assert not TimeSlot.objects.exists()

    def test_unknown_doctor(self, db):
        with pytest.raises(NotFound):
            services.create_slot(999999, MONDAY, time(10, 0), time(11, 0))


@pytest.mark.django_db
class TestReserveAndRelease:

    def test_reserve_then_second_reserve_conflicts(self, available_slot, client_user):
        first = create_appointment(owner=client_user, pet_name='Barsik')
        second = create_appointment(owner=client_user, pet_name='Murka')

        services.reserve_slot(available_slot.pk, first.pk)
        available_slot.refresh_from_db()
        assert available_slot.status == TimeSlot.Status.BUSY
        assert available_slot.appointment_id == first.pk

        with pytest.raises(Conflict):
            services.reserve_slot(available_slot.pk, second.pk)

        available_slot.refresh_from_db()
        assert available_slot.appointment_id == first.pk

    def test_stale_instances_cannot_both_reserve(self, available_slot, client_user):
        """Two callers holding the same 'available' snapshot: only one wins"""
        first = create_appointment(owner=client_user, pet_name='Barsik')
        second = create_appointment(owner=client_user, pet_name='Murka')
        seen_by_first = TimeSlot.objects.get(pk=available_slot.pk)
        seen_by_second = TimeSlot.objects.get(pk=available_slot.pk)
        assert seen_by_first.is_available and seen_by_second.is_available

        services.reserve_slot(seen_by_first.pk, first.pk)
        with pytest.raises(Conflict):
            services.reserve_slot(seen_by_second.pk, second.pk)

        assert TimeSlot.objects.filter(appointment__isnull=False).count() == 1

    def test_appointment_cannot_hold_two_slots(self, booked_appointment, available_slot, second_slot):
        with pytest.raises(Conflict):
            services.reserve_slot(second_slot.pk, booked_appointment.pk)

        second_slot.refresh_from_db()
        assert second_slot.status == TimeSlot.Status.AVAILABLE
        assert second_slot.appointment is None
        assert TimeSlot.objects.get(appointment=booked_appointment) == available_slot

    def test_reserve_unavailable_slot(self, available_slot, requested_appointment):
        services.set_slot_unavailable(available_slot.pk)

        with pytest.raises(Conflict):
            services.reserve_slot(available_slot.pk, requested_appointment.pk)

    def test_reserve_missing_slot(self, requested_appointment):
        with pytest.raises(NotFound):
            services.reserve_slot(999999, requested_appointment.pk)

    def test_release_busy_slot(self, available_slot, requested_appointment):
        services.reserve_slot(available_slot.pk, requested_appointment.pk)

        services.release_slot(available_slot.pk)

        available_slot.refresh_from_db()
        assert available_slot.status == TimeSlot.Status.AVAILABLE
        assert available_slot.appointment is None

    def test_release_is_idempotent(self, available_slot, requested_appointment):
        services.reserve_slot(available_slot.pk, requested_appointment.pk)

        services.release_slot(available_slot.pk)
        services.release_slot(available_slot.pk)

        available_slot.refresh_from_db()
        assert available_slot.status == TimeSlot.Status.AVAILABLE

    def test_release_leaves_unavailable_slot_alone(self, available_slot):
        services.set_slot_unavailable(available_slot.pk)

        services.release_slot(available_slot.pk)

        available_slot.refresh_from_db()
        assert available_slot.status == TimeSlot.Status.UNAVAILABLE

    def test_release_missing_slot(self, db):
        with pytest.raises(NotFound):
            services.release_slot(999999)


@pytest.mark.django_db(transaction=True)
class TestConcurrentReservation:
    """Reservations racing from separate connections"""

    def test_only_one_thread_wins(self, available_slot, client_user):
        appointments = [
            create_appointment(owner=client_user, pet_name='Barsik'),
            create_appointment(owner=client_user, pet_name='Murka'),
        ]
        barrier = threading.Barrier(len(appointments))
        results = []

        def reserve(appointment_id):
            try:
                barrier.wait()
                services.reserve_slot(available_slot.pk, appointment_id)
                results.append('ok')
            except Exception as exc:
                results.append(type(exc).__name__)
            finally:
                connection.close()

        threads = [threading.Thread(target=reserve, args=(appt.pk,)) for appt in appointments]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(results) == ['Conflict', 'ok']
        available_slot.refresh_from_db()
        assert available_slot.status == TimeSlot.Status.BUSY
        assert available_slot.appointment_id in {appt.pk for appt in appointments}


@pytest.mark.django_db
class TestDeleteSlot:

    def test_delete_available_slot(self, available_slot):
        services.delete_slot(available_slot.pk)

        assert not TimeSlot.objects.filter(pk=available_slot.pk).exists()

    def test_delete_busy_slot_then_release_and_delete(self, available_slot, requested_appointment):
        services.reserve_slot(available_slot.pk, requested_appointment.pk)

        with pytest.raises(SlotBusy):
            services.delete_slot(available_slot.pk)
        assert TimeSlot.objects.filter(pk=available_slot.pk).exists()

        services.release_slot(available_slot.pk)
        services.delete_slot(available_slot.pk)

        assert not TimeSlot.objects.filter(pk=available_slot.pk).exists()

    def test_delete_unavailable_slot(self, available_slot):
        services.set_slot_unavailable(available_slot.pk)

        services.delete_slot(available_slot.pk)

        assert not TimeSlot.objects.exists()

    def test_delete_missing_slot(self, db):
        with pytest.raises(NotFound):
            services.delete_slot(999999)


@pytest.mark.django_db
class TestBulkDeleteAvailable:

    @pytest.fixture
    def week_of_slots(self, doctor_profile, requested_appointment):
        slots = [
            services.create_slot(doctor_profile, MONDAY + timedelta(days=offset), time(10, 0), time(11, 0))
            for offset in range(5)
        ]
        services.reserve_slot(slots[1].pk, requested_appointment.pk)
        services.set_slot_unavailable(slots[2].pk)
        return slots

    def test_deletes_only_available(self, doctor_profile, week_of_slots):
        deleted = services.bulk_delete_available(doctor_profile)

        assert deleted == 3
        remaining = set(TimeSlot.objects.values_list('status', flat=True))
        assert remaining == {TimeSlot.Status.BUSY, TimeSlot.Status.UNAVAILABLE}

    def test_respects_date_window(self, doctor_profile, week_of_slots):
        deleted = services.bulk_delete_available(
            doctor_profile,
            date_from=MONDAY + timedelta(days=1),
            date_to=MONDAY + timedelta(days=3),
        )

        # Tuesday is busy and Wednesday unavailable, only Thursday goes
        assert deleted == 1
        assert not TimeSlot.objects.filter(date=MONDAY + timedelta(days=3)).exists()
        assert TimeSlot.objects.filter(date=MONDAY).exists()

    def test_other_doctor_untouched(self, doctor_profile, second_doctor, week_of_slots):
        services.create_slot(second_doctor, MONDAY, time(10, 0), time(11, 0))

        services.bulk_delete_available(doctor_profile)

        assert TimeSlot.objects.filter(doctor=second_doctor).count() == 1

    def test_all_doctors(self, second_doctor, week_of_slots):
        services.create_slot(second_doctor, MONDAY, time(10, 0), time(11, 0))

        assert services.bulk_delete_available() == 4

    def test_nothing_to_delete(self, doctor_profile):
        assert services.bulk_delete_available(doctor_profile) == 0


@pytest.mark.django_db
class TestSlotAvailability:

    def test_toggle_unavailable_and_back(self, available_slot):
        services.set_slot_unavailable(available_slot.pk)
        available_slot.refresh_from_db()
        assert available_slot.status == TimeSlot.Status.UNAVAILABLE

        services.set_slot_available(available_slot.pk)
        available_slot.refresh_from_db()
        assert available_slot.status == TimeSlot.Status.AVAILABLE

    def test_already_in_state_is_noop(self, available_slot):
        services.set_slot_available(available_slot.pk)

        available_slot.refresh_from_db()
        assert available_slot.status == TimeSlot.Status.AVAILABLE

    def test_busy_slot_cannot_be_toggled(self, available_slot, requested_appointment):
        services.reserve_slot(available_slot.pk, requested_appointment.pk)

        with pytest.raises(SlotBusy):
            services.set_slot_unavailable(available_slot.pk)

    def test_missing_slot(self, db):
        with pytest.raises(NotFound):
            services.set_slot_unavailable(999999)


@pytest.mark.django_db
class TestGenerateSlots:

    def test_creates_every_candidate(self, doctor_profile, service):
        result = services.generate_slots(make_spec(doctor=doctor_profile, service=service))

        assert result.created == 2
        assert result.failed == 0
        assert result.complete is True
        assert [slot.start_time for slot in result.slots] == [time(10, 0), time(11, 0)]
        assert all(slot.service == service for slot in result.slots)

    def test_partial_failure_keeps_created_slots(self, doctor_profile):
        services.create_slot(doctor_profile, MONDAY, time(10, 30), time(11, 0))

        result = services.generate_slots(make_spec(doctor=doctor_profile))

        assert result.created == 1
        assert result.failed == 1
        assert result.complete is False
        assert isinstance(result.first_error, Conflict)
        assert TimeSlot.objects.filter(doctor=doctor_profile).count() == 2
        assert result.as_dict()['first_error'] is not None

    def test_running_twice_creates_nothing_new(self, doctor_profile):
        services.generate_slots(make_spec(doctor=doctor_profile))

        result = services.generate_slots(make_spec(doctor=doctor_profile))

        assert result.created == 0
        assert result.failed == 2
        assert TimeSlot.objects.count() == 2

    def test_invalid_spec_creates_nothing(self, doctor_profile):
        with pytest.raises(InvalidInput):
            services.generate_slots(make_spec(doctor=doctor_profile, step_minutes=0))

        assert not TimeSlot.objects.exists()

    def test_doctor_required(self, db):
        with pytest.raises(InvalidInput):
            services.generate_slots(make_spec())

    def test_ids_are_looked_up_once(self, doctor_profile, service):
        spec = make_spec(doctor=doctor_profile.pk, service=service.pk, time_to=time(14, 0))

        with CaptureQueriesContext(connection) as ctx:
            result = services.generate_slots(spec)

        assert result.created == 4
        assert all(slot.doctor_id == doctor_profile.pk for slot in result.slots)
        assert all(slot.service_id == service.pk for slot in result.slots)
        assert sum('"doctors_service"' in query['sql'] for query in ctx.captured_queries) == 1
        assert sum('"accounts_user"' in query['sql'] for query in ctx.captured_queries) == 1


# ============================================
# SERIALIZER TESTS
# ============================================

class TestGenerateSlotsSerializer:

    def test_explicit_spec(self):
        serializer = GenerateSlotsSerializer(data={
            'doctor_id': 1,
            'date_from': '2025-06-02',
            'date_to': '2025-06-06',
            'weekdays': ['mon', 'wed'],
            'time_from': '09:00',
            'time_to': '12:00',
            'step_minutes': 45,
        })

        assert serializer.is_valid(), serializer.errors
        spec = serializer.to_spec(doctor=None)
        assert spec.weekdays == frozenset({'mon', 'wed'})
        assert spec.step_minutes == 45

    def test_defaults_to_working_days(self):
        serializer = GenerateSlotsSerializer(data={
            'doctor_id': 1,
            'date_from': '2025-06-02',
            'date_to': '2025-06-06',
            'time_from': '09:00',
            'time_to': '12:00',
        })

        assert serializer.is_valid(), serializer.errors
        assert serializer.to_spec(doctor=None).weekdays == WORKING_DAYS

    def test_dates_required_without_auto_week(self):
        serializer = GenerateSlotsSerializer(data={'doctor_id': 1})

        assert not serializer.is_valid()
        assert 'date_from' in serializer.errors

    def test_unknown_weekday(self):
        serializer = GenerateSlotsSerializer(data={'doctor_id': 1, 'auto_week': True, 'weekdays': ['funday']})

        assert not serializer.is_valid()
        assert 'weekdays' in serializer.errors


# ============================================
# API TESTS
# ============================================

@pytest.mark.django_db
class TestDirectoryAPI:

    def test_list_specializations(self, api_client, specialization):
        response = api_client.get(reverse('specialization-list'))

        assert response.status_code == status.HTTP_200_OK
        assert [item['name'] for item in response.data] == ['Therapy']

    def test_list_services(self, api_client, service):
        response = api_client.get(reverse('service-list'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data[0]['code'] == 'OC1'
        assert response.data[0]['specialization_name'] == 'Therapy'

    def test_list_doctors(self, api_client, doctor_profile, second_doctor):
        second_doctor.is_active = False
        second_doctor.save()

        response = api_client.get(reverse('doctor-list'))

        assert response.status_code == status.HTTP_200_OK
        assert [item['id'] for item in response.data['results']] == [doctor_profile.id]
        assert response.data['results'][0]['full_name'] == 'Dr. Test Vet'


@pytest.mark.django_db
class TestDoctorSlotsAPI:

    def test_anonymous_sees_only_available(self, api_client, doctor_profile, available_slot, second_slot):
        services.set_slot_unavailable(second_slot.pk)

        url = reverse('doctor-slots', kwargs={'doctor_id': doctor_profile.id})
        response = api_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        assert [item['id'] for item in response.data['results']] == [available_slot.id]

    def test_staff_sees_every_status(self, authenticated_registrar, doctor_profile, available_slot, second_slot):
        services.set_slot_unavailable(second_slot.pk)

        url = reverse('doctor-slots', kwargs={'doctor_id': doctor_profile.id})
        response = authenticated_registrar.get(url, {'status': 'unavailable'})

        assert response.status_code == status.HTTP_200_OK
        assert [item['id'] for item in response.data['results']] == [second_slot.id]

    def test_filter_by_date(self, api_client, doctor_profile, available_slot):
        other_day = services.create_slot(doctor_profile, MONDAY + timedelta(days=1), time(10, 0), time(11, 0))

        url = reverse('doctor-slots', kwargs={'doctor_id': doctor_profile.id})
        response = api_client.get(url, {'date': str(other_day.date)})

        assert [item['id'] for item in response.data['results']] == [other_day.id]

    def test_by_date_groups_slots(self, authenticated_registrar, doctor_profile, available_slot, second_slot):
        tuesday = services.create_slot(doctor_profile, MONDAY + timedelta(days=1), time(9, 0), time(10, 0))

        url = reverse('doctor-slots-by-date', kwargs={'doctor_id': doctor_profile.id})
        response = authenticated_registrar.get(url, {'period': 'all'})

        assert response.status_code == status.HTTP_200_OK
        days = response.data['days']
        assert [day['date'] for day in days] == [MONDAY, tuesday.date]
        assert [slot['id'] for slot in days[0]['slots']] == [available_slot.id, second_slot.id]

    def test_by_date_unknown_period(self, authenticated_registrar, doctor_profile):
        url = reverse('doctor-slots-by-date', kwargs={'doctor_id': doctor_profile.id})
        response = authenticated_registrar.get(url, {'period': 'fortnight'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error']['code'] == 'invalid_input'

    def test_by_date_forbidden_for_clients(self, authenticated_client, doctor_profile):
        url = reverse('doctor-slots-by-date', kwargs={'doctor_id': doctor_profile.id})

        assert authenticated_client.get(url).status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestSlotManagementAPI:

    def test_create_slot(self, authenticated_registrar, doctor_profile):
        response = authenticated_registrar.post(reverse('create-slot'), {
            'doctor_id': doctor_profile.id,
            'date': '2025-06-02',
            'start_time': '10:00',
            'end_time': '11:00',
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['status'] == 'available'

    def test_create_overlapping_slot(self, authenticated_registrar, doctor_profile, available_slot):
        response = authenticated_registrar.post(reverse('create-slot'), {
            'doctor_id': doctor_profile.id,
            'date': '2025-06-02',
            'start_time': '10:30',
            'end_time': '11:30',
        }, format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['success'] is False
        assert response.data['error']['code'] == 'conflict'

    def test_create_inverted_slot(self, authenticated_registrar, doctor_profile):
        response = authenticated_registrar.post(reverse('create-slot'), {
            'doctor_id': doctor_profile.id,
            'date': '2025-06-02',
            'start_time': '11:00',
            'end_time': '10:00',
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_client_cannot_create_slot(self, authenticated_client, doctor_profile):
        response = authenticated_client.post(reverse('create-slot'), {
            'doctor_id': doctor_profile.id,
            'date': '2025-06-02',
            'start_time': '10:00',
            'end_time': '11:00',
        }, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert not TimeSlot.objects.exists()

    def test_vet_cannot_create_slot(self, authenticated_vet, doctor_profile):
        response = authenticated_vet.post(reverse('create-slot'), {
            'doctor_id': doctor_profile.id,
            'date': '2025-06-02',
            'start_time': '10:00',
            'end_time': '11:00',
        }, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_generate_slots(self, authenticated_registrar, doctor_profile):
        payload = {
            'doctor_id': doctor_profile.id,
            'date_from': '2025-06-02',
            'date_to': '2025-06-02',
            'weekdays': ['mon'],
            'time_from': '10:00',
            'time_to': '12:00',
            'step_minutes': 60,
        }

        response = authenticated_registrar.post(reverse('generate-slots'), payload, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['created'] == 2
        assert response.data['failed'] == 0

        repeat = authenticated_registrar.post(reverse('generate-slots'), payload, format='json')

        assert repeat.status_code == status.HTTP_200_OK
        assert repeat.data['created'] == 0
        assert repeat.data['failed'] == 2

    def test_generate_auto_week(self, authenticated_registrar, doctor_profile):
        response = authenticated_registrar.post(reverse('generate-slots'), {
            'doctor_id': doctor_profile.id,
            'auto_week': True,
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['created'] == 40

    def test_generate_unknown_doctor(self, authenticated_registrar):
        response = authenticated_registrar.post(reverse('generate-slots'), {
            'doctor_id': 999999,
            'auto_week': True,
        }, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_delete_available_slot(self, authenticated_registrar, available_slot):
        response = authenticated_registrar.delete(reverse('delete-slot', kwargs={'pk': available_slot.pk}))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not TimeSlot.objects.exists()

    def test_delete_busy_slot(self, authenticated_registrar, booked_appointment):
        slot = booked_appointment.bound_slot

        response = authenticated_registrar.delete(reverse('delete-slot', kwargs={'pk': slot.pk}))

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['error']['code'] == 'slot_busy'

    def test_release_slot(self, authenticated_registrar, booked_appointment):
        slot = booked_appointment.bound_slot

        response = authenticated_registrar.post(reverse('release-slot', kwargs={'pk': slot.pk}))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == 'available'
        assert response.data['appointment'] is None

    def test_mark_slot_unavailable(self, authenticated_registrar, available_slot):
        url = reverse('slot-availability', kwargs={'pk': available_slot.pk})

        response = authenticated_registrar.post(url, {'available': False}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == 'unavailable'

    def test_bulk_delete(self, authenticated_registrar, doctor_profile, available_slot, second_slot):
        url = reverse('bulk-delete-slots', kwargs={'doctor_id': doctor_profile.id})

        response = authenticated_registrar.post(url, {'date_from': '2025-06-02', 'date_to': '2025-06-02'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['deleted'] == 2

    def test_bulk_delete_inverted_window(self, authenticated_registrar, doctor_profile):
        url = reverse('bulk-delete-slots', kwargs={'doctor_id': doctor_profile.id})

        response = authenticated_registrar.post(url, {'date_from': '2025-06-05', 'date_to': '2025-06-02'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST


# ============================================
# ADMIN TESTS
# ============================================

@pytest.fixture
def admin_site_client(client, db):
    superuser = User.objects.create_superuser(email='root@test.com', password='testpass123')
    client.force_login(superuser)
    return client


@pytest.mark.django_db
class TestTimeSlotAdmin:

    def test_add_goes_through_overlap_check(self, admin_site_client, doctor_profile, available_slot):
        response = admin_site_client.post(reverse('admin:doctors_timeslot_add'), {
            'doctor': doctor_profile.id,
            'date': '2025-06-02',
            'start_time': '10:30',
            'end_time': '11:30',
            'service': '',
        })

        assert response.status_code == 200
        assert 'Overlaps the existing slot 10:00-11:00.' in response.context['adminform'].form.non_field_errors()
        assert TimeSlot.objects.count() == 1

    def test_add_creates_available_slot(self, admin_site_client, doctor_profile, service):
        response = admin_site_client.post(reverse('admin:doctors_timeslot_add'), {
            'doctor': doctor_profile.id,
            'date': '2025-06-02',
            'start_time': '14:00',
            'end_time': '15:00',
            'service': service.id,
        })

        assert response.status_code == 302
        slot = TimeSlot.objects.get(doctor=doctor_profile)
        assert slot.start_time == time(14, 0)
        assert slot.status == TimeSlot.Status.AVAILABLE
        assert slot.service == service

    def test_booked_slot_times_are_read_only(self, admin_site_client, booked_appointment,
                                            available_slot, second_doctor):
        response = admin_site_client.post(
            reverse('admin:doctors_timeslot_change', args=[available_slot.pk]),
            {
                'doctor': second_doctor.id,
                'date': '2025-06-03',
                'start_time': '15:00',
                'end_time': '16:00',
                'service': '',
            }
        )

        assert response.status_code == 302
        available_slot.refresh_from_db()
        booked_appointment.refresh_from_db()
        assert available_slot.doctor_id == booked_appointment.doctor_id
        assert (available_slot.date, available_slot.start_time) == (MONDAY, time(10, 0))
        assert booked_appointment.starts_at == timezone.make_aware(available_slot.starts_at)

    def test_cannot_delete_booked_slot(self, admin_site_client, booked_appointment, available_slot):
        response = admin_site_client.post(
            reverse('admin:doctors_timeslot_delete', args=[available_slot.pk]), {'post': 'yes'}
        )

        assert response.status_code == 403
        assert TimeSlot.objects.filter(pk=available_slot.pk, appointment=booked_appointment).exists()

    def test_delete_free_slot(self, admin_site_client, available_slot):
        response = admin_site_client.post(
            reverse('admin:doctors_timeslot_delete', args=[available_slot.pk]), {'post': 'yes'}
        )

        assert response.status_code == 302
        assert not TimeSlot.objects.exists()

    def test_bulk_delete_refuses_selection_with_booked_slot(self, admin_site_client, booked_appointment,
                                                            available_slot, second_slot):
        response = admin_site_client.post(reverse('admin:doctors_timeslot_changelist'), {
            'action': 'delete_selected',
            '_selected_action': [available_slot.pk, second_slot.pk],
            'post': 'yes',
        })

        assert response.status_code == 403
        assert TimeSlot.objects.count() == 2

    def test_bulk_delete_free_slots(self, admin_site_client, available_slot, second_slot):
        services.set_slot_unavailable(second_slot.pk)

        response = admin_site_client.post(reverse('admin:doctors_timeslot_changelist'), {
            'action': 'delete_selected',
            '_selected_action': [available_slot.pk, second_slot.pk],
            'post': 'yes',
        })

        assert response.status_code == 302
        assert not TimeSlot.objects.exists()


# ============================================
# MANAGEMENT COMMAND TESTS
# ============================================

@pytest.mark.django_db
class TestGenerateSlotsCommand:

    def test_explicit_range(self, doctor_profile):
        out = StringIO()

        call_command(
            'generate_slots',
            '--doctor', str(doctor_profile.id),
            '--from', '2025-06-02',
            '--to', '2025-06-03',
            '--time-from', '10:00',
            '--time-to', '12:00',
            '--step', '60',
            stdout=out,
        )

        assert TimeSlot.objects.filter(doctor=doctor_profile).count() == 4
        assert 'Total slots generated: 4' in out.getvalue()

    def test_auto_week_for_all_active_doctors(self, doctor_profile, second_doctor):
        out = StringIO()

        call_command('generate_slots', '--auto-week', stdout=out)

        assert TimeSlot.objects.filter(doctor=doctor_profile).count() == 40
        assert TimeSlot.objects.filter(doctor=second_doctor).count() == 40
        assert 'Total slots generated: 80' in out.getvalue()

    def test_reports_skipped_candidates(self, doctor_profile, available_slot):
        out = StringIO()

        call_command(
            'generate_slots',
            '--doctor', str(doctor_profile.id),
            '--from', '2025-06-02',
            '--to', '2025-06-02',
            '--time-from', '10:00',
            '--time-to', '12:00',
            '--step', '60',
            stdout=out,
        )

        assert '1 skipped' in out.getvalue()

    def test_range_required(self, doctor_profile):
        with pytest.raises(CommandError):
            call_command('generate_slots', '--doctor', str(doctor_profile.id), stdout=StringIO())

    def test_unknown_doctor(self, db):
        with pytest.raises(CommandError):
            call_command('generate_slots', '--doctor', '999999', '--auto-week', stdout=StringIO())


@pytest.mark.django_db
class TestCleanupOldSlotsCommand:

    def test_deletes_only_old_available_slots(self, doctor_profile, requested_appointment):
        today = timezone.localdate()
        old = services.create_slot(doctor_profile, today - timedelta(days=30), time(10, 0), time(11, 0))
        old_busy = services.create_slot(doctor_profile, today - timedelta(days=30), time(11, 0), time(12, 0))
        services.reserve_slot(old_busy.pk, requested_appointment.pk)
        recent = services.create_slot(doctor_profile, today - timedelta(days=1), time(10, 0), time(11, 0))
        out = StringIO()

        call_command('cleanup_old_slots', stdout=out)

        assert not TimeSlot.objects.filter(pk=old.pk).exists()
        assert TimeSlot.objects.filter(pk=old_busy.pk).exists()
        assert TimeSlot.objects.filter(pk=recent.pk).exists()
        assert 'Deleted 1 old available slots' in out.getvalue()
