import django_filters

from appointments.queries import PERIODS, period_window
from .models import TimeSlot


class TimeSlotFilter(django_filters.FilterSet):
    date = django_filters.DateFilter(field_name='date')
    date_from = django_filters.DateFilter(field_name='date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='date', lookup_expr='lte')
    status = django_filters.ChoiceFilter(choices=TimeSlot.Status.choices)
    period = django_filters.ChoiceFilter(
        choices=[(period, period) for period in PERIODS],
        method='filter_period',
    )

    class Meta:
        model = TimeSlot
        fields = ['date', 'date_from', 'date_to', 'status', 'period']

    def filter_period(self, queryset, name, value):
        date_from, date_to = period_window(value)
        if date_from:
            queryset = queryset.filter(date__gte=date_from)
        if date_to:
            queryset = queryset.filter(date__lte=date_to)
        return queryset
