from datetime import datetime, time, timedelta

import django_filters
from django.utils import timezone

from .models import Appointment


class AppointmentFilter(django_filters.FilterSet):
    date_from = django_filters.DateFilter(method='filter_date_from')
    date_to = django_filters.DateFilter(method='filter_date_to')
    status = django_filters.ChoiceFilter(choices=Appointment.Status.choices)
    doctor = django_filters.NumberFilter(field_name='doctor_id')

    class Meta:
        model = Appointment
        fields = ['date_from', 'date_to', 'status', 'doctor']

    def filter_date_from(self, queryset, name, value):
        return queryset.filter(starts_at__gte=timezone.make_aware(datetime.combine(value, time.min)))

    def filter_date_to(self, queryset, name, value):
        end = timezone.make_aware(datetime.combine(value + timedelta(days=1), time.min))
        return queryset.filter(starts_at__lt=end)
