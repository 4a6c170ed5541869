from django.contrib import admin
from .models import Appointment


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = [
        'appointment_number',
        'owner',
        'pet_name',
        'doctor',
        'service',
        'starts_at',
        'status',
        'created_at',
    ]
    list_filter = ['status', 'doctor', 'doctor__specialization']
    search_fields = [
        'appointment_number',
        'owner__email',
        'owner__first_name',
        'pet_name',
        'doctor__user__email',
        'doctor__user__last_name',
    ]
    date_hierarchy = 'created_at'
    # Status and schedule change only through the lifecycle services
    readonly_fields = [
        'appointment_number', 'status', 'starts_at', 'confirmed_at', 'completed_at',
        'cancelled_by', 'cancelled_at', 'created_at', 'updated_at',
    ]

    fieldsets = (
        ('Appointment Info', {
            'fields': ('appointment_number', 'status')
        }),
        ('Request', {
            'fields': ('owner', 'pet_name', 'pet_species', 'complaint', 'desired_doctor', 'desired_service')
        }),
        ('Assignment', {
            'fields': ('doctor', 'service', 'starts_at')
        }),
        ('Cancellation', {
            'fields': ('cancellation_reason', 'cancelled_by', 'cancelled_at'),
            'classes': ('collapse',)
        }),
        ('Timestamps', {
            'fields': ('confirmed_at', 'completed_at', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
