from django.contrib.auth import get_user_model
from rest_framework import serializers

from doctors.serializers import TimeSlotSerializer
from . import lifecycle
from .models import Appointment

User = get_user_model()


class AppointmentListSerializer(serializers.ModelSerializer):
    """Serializer for listing appointments"""

    owner_name = serializers.CharField(source='owner.full_name', read_only=True)
    doctor_name = serializers.CharField(source='doctor.display_name', read_only=True, default=None)
    service_name = serializers.CharField(source='service.name', read_only=True, default=None)
    desired_doctor_name = serializers.CharField(source='desired_doctor.display_name', read_only=True, default=None)
    desired_service_name = serializers.CharField(source='desired_service.name', read_only=True, default=None)

    class Meta:
        model = Appointment
        fields = [
            'id',
            'appointment_number',
            'owner_name',
            'pet_name',
            'pet_species',
            'doctor',
            'doctor_name',
            'service',
            'service_name',
            'desired_doctor_name',
            'desired_service_name',
            'starts_at',
            'status',
            'created_at',
        ]


class AppointmentDetailSerializer(serializers.ModelSerializer):
    """Serializer for appointment details"""

    owner_name = serializers.CharField(source='owner.full_name', read_only=True)
    owner_email = serializers.CharField(source='owner.email', read_only=True)
    doctor_name = serializers.CharField(source='doctor.display_name', read_only=True, default=None)
    service_name = serializers.CharField(source='service.name', read_only=True, default=None)
    desired_doctor_name = serializers.CharField(source='desired_doctor.display_name', read_only=True, default=None)
    desired_service_name = serializers.CharField(source='desired_service.name', read_only=True, default=None)
    slot = serializers.SerializerMethodField()

    class Meta:
        model = Appointment
        fields = [
            'id',
            'appointment_number',
            'owner',
            'owner_name',
            'owner_email',
            'pet_name',
            'pet_species',
            'complaint',
            'desired_doctor',
            'desired_doctor_name',
            'desired_service',
            'desired_service_name',
            'doctor',
            'doctor_name',
            'service',
            'service_name',
            'slot',
            'starts_at',
            'status',
            'confirmed_at',
            'completed_at',
            'cancellation_reason',
            'cancelled_at',
            'created_at',
            'updated_at',
        ]

    def get_slot(self, obj):
        slot = obj.bound_slot
        return TimeSlotSerializer(slot).data if slot else None


class AppointmentRequestSerializer(serializers.Serializer):
    """Client intake: what the owner asks for, before the clinic decides anything."""

    pet_name = serializers.CharField(max_length=100)
    pet_species = serializers.CharField(max_length=50, required=False, allow_blank=True)
    complaint = serializers.CharField(required=False, allow_blank=True)
    desired_doctor_id = serializers.IntegerField(required=False, allow_null=True)
    desired_service_id = serializers.IntegerField(required=False, allow_null=True)
    preferred_starts_at = serializers.DateTimeField(required=False, allow_null=True)

    def create(self, validated_data):
        return lifecycle.create_appointment(
            owner=self.context['request'].user,
            pet_name=validated_data['pet_name'],
            pet_species=validated_data.get('pet_species', ''),
            complaint=validated_data.get('complaint', ''),
            desired_doctor=validated_data.get('desired_doctor_id'),
            desired_service=validated_data.get('desired_service_id'),
            starts_at=validated_data.get('preferred_starts_at'),
        )


class StaffAppointmentSerializer(serializers.Serializer):
    """Registrar creates an appointment for a client, optionally on a slot."""

    owner_id = serializers.IntegerField()
    pet_name = serializers.CharField(max_length=100)
    pet_species = serializers.CharField(max_length=50, required=False, allow_blank=True)
    complaint = serializers.CharField(required=False, allow_blank=True)
    doctor_id = serializers.IntegerField(required=False, allow_null=True)
    service_id = serializers.IntegerField(required=False, allow_null=True)
    starts_at = serializers.DateTimeField(required=False, allow_null=True)
    slot_id = serializers.IntegerField(required=False, allow_null=True)

    def validate_owner_id(self, value):
        if not User.objects.filter(pk=value).exists():
            raise serializers.ValidationError("Client not found")
        return value

    def validate(self, attrs):
        if attrs.get('slot_id') and attrs.get('starts_at'):
            raise serializers.ValidationError({
                'starts_at': 'The start time comes from the slot; send either slot_id or starts_at'
            })
        return attrs

    def create(self, validated_data):
        return lifecycle.create_staff_appointment(
            owner=User.objects.get(pk=validated_data['owner_id']),
            pet_name=validated_data['pet_name'],
            pet_species=validated_data.get('pet_species', ''),
            complaint=validated_data.get('complaint', ''),
            doctor=validated_data.get('doctor_id'),
            service=validated_data.get('service_id'),
            starts_at=validated_data.get('starts_at'),
            slot=validated_data.get('slot_id'),
        )


class AssignDoctorServiceSerializer(serializers.Serializer):
    doctor_id = serializers.IntegerField(allow_null=True)
    service_id = serializers.IntegerField(allow_null=True)


class BindSlotSerializer(serializers.Serializer):
    slot_id = serializers.IntegerField()


class ScheduleAppointmentSerializer(serializers.Serializer):
    starts_at = serializers.DateTimeField()


class CancelAppointmentSerializer(serializers.Serializer):
    """The reason is shown to the client, so it cannot be empty."""

    cancellation_reason = serializers.CharField(required=True, allow_blank=False, trim_whitespace=True)
