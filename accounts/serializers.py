from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from .models import DoctorProfile

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        data['user'] = {
            'id': self.user.id,
            'email': self.user.email,
            'full_name': self.user.full_name,
            'user_type': self.user.user_type,
        }
        return data


class UserSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'full_name', 'user_type', 'phone', 'created_at']
        read_only_fields = ['id', 'email', 'user_type', 'created_at']


class DoctorProfileSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(source='user.full_name', read_only=True)
    specialization_name = serializers.CharField(source='specialization.name', read_only=True, default=None)

    class Meta:
        model = DoctorProfile
        fields = ['id', 'full_name', 'specialization', 'specialization_name', 'bio', 'is_active']
        read_only_fields = fields
