from django.shortcuts import get_object_or_404
from rest_framework import generics, permissions, status
from rest_framework.views import APIView
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from accounts.models import DoctorProfile
from appointments.queries import group_slots_by_date, list_slots, period_window
from .directory import get_doctor, get_service
from .filters import TimeSlotFilter
from .models import Specialization, Service, TimeSlot
from .serializers import (
    SpecializationSerializer, ServiceSerializer, DoctorListSerializer,
    TimeSlotSerializer, CreateSlotSerializer, GenerateSlotsSerializer,
    BulkDeleteSlotsSerializer, SlotAvailabilitySerializer,
)
from . import services


def schedule_forbidden():
    return Response(
        {'error': 'Only registrars and admins can edit the schedule'},
        status=status.HTTP_403_FORBIDDEN
    )


class SpecializationListView(generics.ListAPIView):
    queryset = Specialization.objects.filter(is_active=True)
    serializer_class = SpecializationSerializer
    permission_classes = [permissions.AllowAny]
    pagination_class = None


class ServiceListView(generics.ListAPIView):
    queryset = Service.objects.filter(is_active=True).select_related('specialization')
    serializer_class = ServiceSerializer
    permission_classes = [permissions.AllowAny]
    pagination_class = None


class DoctorListView(generics.ListAPIView):
    serializer_class = DoctorListSerializer
    permission_classes = [permissions.AllowAny]

    def get_queryset(self):
        queryset = DoctorProfile.objects.filter(
            is_active=True
        ).select_related('user', 'specialization').order_by('id')

        specialization = self.request.query_params.get('specialization')
        if specialization:
            queryset = queryset.filter(specialization_id=specialization)

        return queryset


class DoctorSlotsView(generics.ListAPIView):
    """Slots of one doctor; people outside the registry only see free ones."""

    serializer_class = TimeSlotSerializer
    permission_classes = [permissions.AllowAny]
    filter_backends = [DjangoFilterBackend]
    filterset_class = TimeSlotFilter

    def get_queryset(self):
        queryset = TimeSlot.objects.filter(
            doctor_id=self.kwargs.get('doctor_id')
        ).select_related('appointment', 'service')

        user = self.request.user
        if not (user.is_authenticated and user.is_clinic_staff):
            queryset = queryset.filter(status=TimeSlot.Status.AVAILABLE)

        return queryset.order_by('date', 'start_time')


class DoctorSlotsByDateView(APIView):
    """Slots of one doctor grouped by date, for the schedule editor."""

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, doctor_id):
        if not request.user.is_clinic_staff:
            return schedule_forbidden()

        date_from, date_to = period_window(request.query_params.get('period', '7'))
        slots = list_slots(
            doctor_id,
            date_from=date_from,
            date_to=date_to,
            status=request.query_params.get('status') or None,
        )
        days = [
            {'date': day, 'slots': TimeSlotSerializer(day_slots, many=True).data}
            for day, day_slots in group_slots_by_date(slots).items()
        ]
        return Response({'doctor': doctor_id, 'days': days})


class CreateSlotView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        if not request.user.can_manage_schedule:
            return schedule_forbidden()

        serializer = CreateSlotSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        slot = services.create_slot(
            data['doctor_id'],
            data['date'],
            data['start_time'],
            data['end_time'],
            service=data.get('service_id'),
        )
        return Response(TimeSlotSerializer(slot).data, status=status.HTTP_201_CREATED)


class GenerateSlotsView(APIView):
    """Bulk-create slots from a recurrence spec; partial results are kept."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        if not request.user.can_manage_schedule:
            return schedule_forbidden()

        serializer = GenerateSlotsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        doctor = get_doctor(serializer.validated_data['doctor_id'])
        service = get_service(serializer.validated_data.get('service_id'))
        result = services.generate_slots(serializer.to_spec(doctor, service))

        return Response({
            'message': f'Generated {result.created} time slots',
            **result.as_dict(),
        }, status=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK)


class DeleteSlotView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def delete(self, request, pk):
        if not request.user.can_manage_schedule:
            return schedule_forbidden()

        services.delete_slot(pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


class ReleaseSlotView(APIView):
    """Free a booked slot without touching the appointment's status."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        if not request.user.can_manage_schedule:
            return schedule_forbidden()

        services.release_slot(pk)
        slot = get_object_or_404(TimeSlot, pk=pk)
        return Response(TimeSlotSerializer(slot).data)


class SlotAvailabilityView(APIView):
    """Mark a free slot unavailable, or make an unavailable one bookable again."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        if not request.user.can_manage_schedule:
            return schedule_forbidden()

        serializer = SlotAvailabilitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        if serializer.validated_data['available']:
            services.set_slot_available(pk)
        else:
            services.set_slot_unavailable(pk)

        slot = get_object_or_404(TimeSlot, pk=pk)
        return Response(TimeSlotSerializer(slot).data)


class BulkDeleteSlotsView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, doctor_id):
        if not request.user.can_manage_schedule:
            return schedule_forbidden()

        serializer = BulkDeleteSlotsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        deleted = services.bulk_delete_available(
            doctor_id,
            date_from=serializer.validated_data.get('date_from'),
            date_to=serializer.validated_data.get('date_to'),
        )
        return Response({
            'message': f'Deleted {deleted} available slots',
            'deleted': deleted,
        })
