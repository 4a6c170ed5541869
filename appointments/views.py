from datetime import date

from rest_framework import generics, permissions, status
from rest_framework.views import APIView
from rest_framework.response import Response
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend

from config.exceptions import InvalidInput
from . import lifecycle
from .filters import AppointmentFilter
from .models import Appointment
from .queries import calendar_hours, pending_requests, week_start, weekly_grid
from .serializers import (
    AppointmentListSerializer,
    AppointmentDetailSerializer,
    AppointmentRequestSerializer,
    StaffAppointmentSerializer,
    AssignDoctorServiceSerializer,
    BindSlotSerializer,
    ScheduleAppointmentSerializer,
    CancelAppointmentSerializer,
)


def visible_appointments(user):
    """Registry sees everything, vets their own patients, clients their own requests."""
    if user.can_manage_schedule:
        return Appointment.objects.all()
    if user.user_type == 'vet':
        return Appointment.objects.filter(doctor__user=user)
    return Appointment.objects.filter(owner=user)


def forbidden(message):
    return Response({'error': message}, status=status.HTTP_403_FORBIDDEN)


class AppointmentListView(generics.ListAPIView):
    """List appointments visible to the current user"""

    serializer_class = AppointmentListSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_class = AppointmentFilter

    def get_queryset(self):
        return visible_appointments(self.request.user).select_related(
            'owner', 'doctor__user', 'service', 'desired_doctor__user', 'desired_service'
        ).order_by('starts_at', 'created_at')


class PendingRequestsView(generics.ListAPIView):
    """New client requests waiting for the registry"""

    serializer_class = AppointmentListSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        if not self.request.user.can_manage_schedule:
            return Appointment.objects.none()
        return pending_requests()


class AppointmentRequestView(generics.CreateAPIView):
    """Client asks for a consultation; no slot is held yet"""

    serializer_class = AppointmentRequestSerializer
    permission_classes = [permissions.IsAuthenticated]

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        appointment = serializer.save()

        return Response({
            'message': 'Consultation requested, the clinic will confirm the time',
            'appointment': AppointmentDetailSerializer(appointment).data
        }, status=status.HTTP_201_CREATED)


class StaffCreateAppointmentView(generics.CreateAPIView):
    serializer_class = StaffAppointmentSerializer
    permission_classes = [permissions.IsAuthenticated]

    def create(self, request, *args, **kwargs):
        if not request.user.can_manage_schedule:
            return forbidden('Only registrars and admins can create appointments for clients')

        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        appointment = serializer.save()

        return Response({
            'message': 'Appointment created',
            'appointment': AppointmentDetailSerializer(appointment).data
        }, status=status.HTTP_201_CREATED)


class AppointmentDetailView(generics.RetrieveAPIView):
    serializer_class = AppointmentDetailSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return visible_appointments(self.request.user)


class RegistryActionView(APIView):
    """
    Base for lifecycle actions taken by the registry. Subclasses implement
    `perform(request, pk)` and return the updated appointment.
    """

    permission_classes = [permissions.IsAuthenticated]
    success_message = ''

    def has_access(self, request, appointment):
        return request.user.can_manage_schedule

    def post(self, request, pk):
        appointment = get_object_or_404(visible_appointments(request.user), pk=pk)
        if not self.has_access(request, appointment):
            return forbidden('You are not allowed to change this appointment')

        appointment = self.perform(request, appointment.pk)
        return Response({
            'message': self.success_message,
            'appointment': AppointmentDetailSerializer(appointment).data
        })

    def perform(self, request, pk):
        raise NotImplementedError


class AssignDoctorServiceView(RegistryActionView):
    success_message = 'Doctor and service saved'

    def perform(self, request, pk):
        serializer = AssignDoctorServiceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return lifecycle.assign_doctor_and_service(
            pk,
            serializer.validated_data['doctor_id'],
            serializer.validated_data['service_id'],
        )


class BindSlotView(RegistryActionView):
    success_message = 'Slot booked for the appointment'

    def perform(self, request, pk):
        serializer = BindSlotSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return lifecycle.bind_slot(pk, serializer.validated_data['slot_id'])


class ScheduleAppointmentView(RegistryActionView):
    success_message = 'Consultation time saved'

    def perform(self, request, pk):
        serializer = ScheduleAppointmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return lifecycle.set_start_time(pk, serializer.validated_data['starts_at'])


class ConfirmAppointmentView(RegistryActionView):
    success_message = 'Appointment confirmed'

    def perform(self, request, pk):
        return lifecycle.confirm(pk)


class CancelAppointmentView(RegistryActionView):
    success_message = 'Appointment cancelled successfully'

    def perform(self, request, pk):
        serializer = CancelAppointmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return lifecycle.cancel(
            pk,
            reason=serializer.validated_data['cancellation_reason'],
            cancelled_by=request.user,
        )


class CompleteAppointmentView(RegistryActionView):
    """The assigned vet or the registry marks the consultation as held"""

    success_message = 'Appointment completed successfully'

    def has_access(self, request, appointment):
        user = request.user
        if user.can_manage_schedule:
            return True
        return user.user_type == 'vet' and appointment.doctor is not None and appointment.doctor.user_id == user.pk

    def perform(self, request, pk):
        return lifecycle.complete(pk)


class WeeklyCalendarView(APIView):
    """Week grid of appointments, bucketed by day and hour"""

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        if not request.user.is_clinic_staff:
            return forbidden('Only clinic staff can view the calendar')

        anchor = request.query_params.get('week')
        try:
            anchor = date.fromisoformat(anchor) if anchor else timezone.localdate()
        except ValueError:
            raise InvalidInput('week must be a date in YYYY-MM-DD format.')

        doctor = request.query_params.get('doctor') or None
        if request.user.user_type == 'vet':
            doctor = getattr(request.user, 'doctor_profile', None)
            if doctor is None:
                return forbidden('No doctor profile is linked to this account')

        grid = weekly_grid(anchor, doctor=doctor)
        cells = [
            {
                'day_index': day_index,
                'hour': hour,
                'appointments': AppointmentListSerializer(appointments, many=True).data,
            }
            for (day_index, hour), appointments in sorted(grid.items())
        ]
        return Response({
            'week_start': week_start(anchor),
            'hours': calendar_hours(),
            'cells': cells,
        })
