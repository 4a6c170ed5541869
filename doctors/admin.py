from django import forms
from django.contrib import admin

from . import services
from .models import Specialization, Service, TimeSlot


@admin.register(Specialization)
class SpecializationAdmin(admin.ModelAdmin):
    list_display = ['name', 'is_active']


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'specialization', 'duration_minutes', 'is_active']
    list_filter = ['is_active', 'specialization']
    search_fields = ['code', 'name']


class TimeSlotAdminForm(forms.ModelForm):
    class Meta:
        model = TimeSlot
        fields = '__all__'

    def clean(self):
        cleaned_data = super().clean()
        if not self.instance._state.adding:
            return cleaned_data

        doctor = cleaned_data.get('doctor')
        day = cleaned_data.get('date')
        start_time = cleaned_data.get('start_time')
        end_time = cleaned_data.get('end_time')
        if doctor and day and start_time and end_time and start_time < end_time:
            clash = services.find_overlap(doctor, day, start_time, end_time)
            if clash:
                raise forms.ValidationError(
                    f"Overlaps the existing slot {clash.start_time:%H:%M}-{clash.end_time:%H:%M}."
                )
        return cleaned_data


@admin.register(TimeSlot)
class TimeSlotAdmin(admin.ModelAdmin):
    form = TimeSlotAdminForm
    list_display = ['doctor', 'date', 'start_time', 'end_time', 'status', 'appointment']
    list_filter = ['status', 'date', 'doctor']
    date_hierarchy = 'date'
    # Occupancy changes go through the scheduling services
    readonly_fields = ['status', 'appointment', 'created_at', 'updated_at']

    def get_readonly_fields(self, request, obj=None):
        if obj is None:
            return self.readonly_fields
        # A booked appointment copies its start from the slot
        return [*self.readonly_fields, 'doctor', 'date', 'start_time', 'end_time']

    def has_delete_permission(self, request, obj=None):
        if obj is not None and obj.status == TimeSlot.Status.BUSY:
            return False
        return super().has_delete_permission(request, obj)

    def save_model(self, request, obj, form, change):
        if change:
            super().save_model(request, obj, form, change)
            return

        slot = services.create_slot(
            obj.doctor, obj.date, obj.start_time, obj.end_time, service=obj.service
        )
        obj.pk = slot.pk
        obj.status = slot.status
        obj.created_at = slot.created_at
        obj.updated_at = slot.updated_at
        obj._state.adding = False

    def delete_model(self, request, obj):
        services.delete_slot(obj.pk)

    def delete_queryset(self, request, queryset):
        for slot_id in list(queryset.values_list('pk', flat=True)):
            services.delete_slot(slot_id)
