# tests/integration/test_schedule_flow.py
"""
Integration tests for the scheduling flow:
- Registry builds a doctor's week of slots
- Client requests a consultation
- Registry assigns, books a slot and confirms
- Vet completes the consultation
- Cancellation frees the slot for the next client
"""

import pytest
from django.urls import reverse
from rest_framework import status

from appointments.models import Appointment
from doctors.models import TimeSlot


def generate_week(client, doctor):
    return client.post(reverse('generate-slots'), {
        'doctor_id': doctor.id,
        'date_from': '2025-06-02',
        'date_to': '2025-06-08',
        'weekdays': ['mon', 'wed', 'fri'],
        'time_from': '10:00',
        'time_to': '12:00',
        'step_minutes': 60,
    }, format='json')


@pytest.mark.django_db
class TestRegistryFlow:
    """Request to completed consultation, through the API"""

    def test_full_journey(self, api_client, client_user, registrar_user, vet_user, doctor_profile, service):
        # Registry opens Monday, Wednesday and Friday mornings
        api_client.force_authenticate(user=registrar_user)
        response = generate_week(api_client, doctor_profile)
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['created'] == 6

        # Client sees the free slots and asks for a consultation
        api_client.force_authenticate(user=client_user)
        slots = api_client.get(
            reverse('doctor-slots', kwargs={'doctor_id': doctor_profile.id}),
            {'date': '2025-06-04'}
        ).data['results']
        assert [slot['start_time'] for slot in slots] == ['10:00:00', '11:00:00']

        response = api_client.post(reverse('request-appointment'), {
            'pet_name': 'Barsik',
            'pet_species': 'cat',
            'complaint': 'Coughing since Sunday',
            'desired_doctor_id': doctor_profile.id,
        }, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        appointment_id = response.data['appointment']['id']

        # Registry picks the request from the queue
        api_client.force_authenticate(user=registrar_user)
        queue = api_client.get(reverse('pending-requests')).data['results']
        assert [item['id'] for item in queue] == [appointment_id]

        response = api_client.post(reverse('assign-appointment', kwargs={'pk': appointment_id}), {
            'doctor_id': doctor_profile.id,
            'service_id': service.id,
        }, format='json')
        assert response.status_code == status.HTTP_200_OK

        response = api_client.post(
            reverse('bind-slot', kwargs={'pk': appointment_id}),
            {'slot_id': slots[1]['id']},
            format='json'
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.data['appointment']['slot']['status'] == 'busy'

        response = api_client.post(reverse('confirm-appointment', kwargs={'pk': appointment_id}))
        assert response.data['appointment']['status'] == 'confirmed'

        # The booked slot disappears from the client's view
        api_client.force_authenticate(user=client_user)
        free = api_client.get(
            reverse('doctor-slots', kwargs={'doctor_id': doctor_profile.id}),
            {'date': '2025-06-04'}
        ).data['results']
        assert [slot['id'] for slot in free] == [slots[0]['id']]

        # It shows up in the vet's week
        api_client.force_authenticate(user=vet_user)
        calendar = api_client.get(reverse('weekly-calendar'), {'week': '2025-06-04'}).data
        assert [(cell['day_index'], cell['hour']) for cell in calendar['cells']] == [(2, 11)]

        response = api_client.post(reverse('complete-appointment', kwargs={'pk': appointment_id}))
        assert response.status_code == status.HTTP_200_OK

        appointment = Appointment.objects.get(pk=appointment_id)
        assert appointment.status == Appointment.Status.COMPLETED
        assert appointment.desired_doctor == doctor_profile
        assert appointment.service == service

        # A completed consultation still holds its slot and cannot be cancelled
        api_client.force_authenticate(user=registrar_user)
        response = api_client.post(
            reverse('cancel-appointment', kwargs={'pk': appointment_id}),
            {'cancellation_reason': 'Mistake'},
            format='json'
        )
        assert response.status_code == status.HTTP_409_CONFLICT
        assert TimeSlot.objects.get(pk=slots[1]['id']).status == TimeSlot.Status.BUSY


@pytest.mark.django_db
class TestDoubleBookingFlow:
    """Two requests competing for one slot"""

    def test_second_booking_waits_for_cancellation(self, api_client, client_user, second_client_user,
                                                   registrar_user, doctor_profile):
        api_client.force_authenticate(user=registrar_user)
        generate_week(api_client, doctor_profile)
        slot = TimeSlot.objects.filter(doctor=doctor_profile).first()

        ids = []
        for owner in (client_user, second_client_user):
            response = api_client.post(reverse('staff-create-appointment'), {
                'owner_id': owner.id,
                'pet_name': 'Barsik',
            }, format='json')
            assert response.status_code == status.HTTP_201_CREATED
            ids.append(response.data['appointment']['id'])
        first, second = ids

        assert api_client.post(
            reverse('bind-slot', kwargs={'pk': first}), {'slot_id': slot.id}, format='json'
        ).status_code == status.HTTP_200_OK

        response = api_client.post(reverse('bind-slot', kwargs={'pk': second}), {'slot_id': slot.id}, format='json')
        assert response.status_code == status.HTTP_409_CONFLICT
        assert Appointment.objects.get(pk=second).starts_at is None

        # The slot cannot be removed while booked
        response = api_client.delete(reverse('delete-slot', kwargs={'pk': slot.id}))
        assert response.status_code == status.HTTP_409_CONFLICT

        api_client.post(
            reverse('cancel-appointment', kwargs={'pk': first}),
            {'cancellation_reason': 'Owner moved to another clinic'},
            format='json'
        )

        response = api_client.post(reverse('bind-slot', kwargs={'pk': second}), {'slot_id': slot.id}, format='json')
        assert response.status_code == status.HTTP_200_OK
        slot.refresh_from_db()
        assert slot.appointment_id == second

        # Free slots outside the booked one can be cleared in bulk
        response = api_client.post(
            reverse('bulk-delete-slots', kwargs={'doctor_id': doctor_profile.id}), {}, format='json'
        )
        assert response.data['deleted'] == 5
        assert list(TimeSlot.objects.values_list('id', flat=True)) == [slot.id]
