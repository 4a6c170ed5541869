from django.conf import settings
from django.utils import timezone
from rest_framework import serializers

from accounts.models import DoctorProfile
from .generator import WEEKDAY_KEYS, WORKING_DAYS, RecurrenceSpec, auto_week_spec
from .models import Specialization, Service, TimeSlot


class SpecializationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Specialization
        fields = ['id', 'name', 'description']


class ServiceSerializer(serializers.ModelSerializer):
    specialization_name = serializers.CharField(source='specialization.name', read_only=True, default=None)

    class Meta:
        model = Service
        fields = ['id', 'code', 'name', 'specialization', 'specialization_name', 'duration_minutes']


class DoctorListSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(source='display_name', read_only=True)
    specialization = SpecializationSerializer(read_only=True)

    class Meta:
        model = DoctorProfile
        fields = ['id', 'full_name', 'specialization', 'bio']


class TimeSlotSerializer(serializers.ModelSerializer):
    appointment_number = serializers.CharField(source='appointment.appointment_number', read_only=True, default=None)
    service_code = serializers.CharField(source='service.code', read_only=True, default=None)

    class Meta:
        model = TimeSlot
        fields = [
            'id', 'doctor', 'date', 'start_time', 'end_time', 'status',
            'appointment', 'appointment_number', 'service', 'service_code',
        ]
        read_only_fields = fields


class CreateSlotSerializer(serializers.Serializer):
    doctor_id = serializers.IntegerField()
    date = serializers.DateField()
    start_time = serializers.TimeField()
    end_time = serializers.TimeField()
    service_id = serializers.IntegerField(required=False, allow_null=True)

    def validate(self, attrs):
        if attrs['start_time'] >= attrs['end_time']:
            raise serializers.ValidationError({'end_time': 'End time must be after start time'})
        return attrs


class GenerateSlotsSerializer(serializers.Serializer):
    """Recurrence spec for bulk creation, or `auto_week` for the standard working week."""

    doctor_id = serializers.IntegerField()
    auto_week = serializers.BooleanField(default=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    weekdays = serializers.ListField(
        child=serializers.ChoiceField(choices=WEEKDAY_KEYS),
        required=False,
        allow_empty=True,
    )
    time_from = serializers.TimeField(required=False)
    time_to = serializers.TimeField(required=False)
    step_minutes = serializers.IntegerField(required=False, default=settings.SLOT_STEP_MINUTES)
    service_id = serializers.IntegerField(required=False, allow_null=True)

    def validate(self, attrs):
        if attrs.get('auto_week'):
            return attrs
        missing = [name for name in ('date_from', 'date_to', 'time_from', 'time_to') if not attrs.get(name)]
        if missing:
            raise serializers.ValidationError({name: 'This field is required.' for name in missing})
        return attrs

    def to_spec(self, doctor, service=None):
        data = self.validated_data
        if data.get('auto_week'):
            return auto_week_spec(doctor, timezone.localdate(), service=service)
        weekdays = data.get('weekdays')
        return RecurrenceSpec(
            date_from=data['date_from'],
            date_to=data['date_to'],
            time_from=data['time_from'],
            time_to=data['time_to'],
            step_minutes=data['step_minutes'],
            weekdays=WORKING_DAYS if weekdays is None else frozenset(weekdays),
            doctor=doctor,
            service=service,
        )


class BulkDeleteSlotsSerializer(serializers.Serializer):
    date_from = serializers.DateField(required=False, allow_null=True)
    date_to = serializers.DateField(required=False, allow_null=True)

    def validate(self, attrs):
        date_from, date_to = attrs.get('date_from'), attrs.get('date_to')
        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError({'date_to': 'date_to must not be earlier than date_from'})
        return attrs


class SlotAvailabilitySerializer(serializers.Serializer):
    available = serializers.BooleanField()
