"""Read-side views over slots and appointments for calendars and queues."""
from collections import OrderedDict, defaultdict
from datetime import datetime, time, timedelta

from django.conf import settings
from django.db.models import Count
from django.utils import timezone

from config.exceptions import InvalidInput
from doctors.directory import get_doctor, specialization_label
from doctors.models import TimeSlot
from .models import Appointment

PERIODS = ('today', '7', '30', 'all')


def _status(choices, value):
    try:
        return choices(value)
    except ValueError:
        raise InvalidInput(f"Unknown status '{value}', expected one of {', '.join(choices.values)}.")


def week_start(day):
    """Monday of the week containing `day`."""
    if isinstance(day, datetime):
        day = timezone.localtime(day).date() if timezone.is_aware(day) else day.date()
    return day - timedelta(days=day.weekday())


def period_window(period, today=None):
    """
    Translate a calendar period filter into an inclusive (date_from, date_to).

    'today' is the current day, '7'/'30' run from today through that many days
    ahead, 'all' is unbounded.
    """
    today = today or timezone.localdate()
    period = str(period)
    if period == 'all':
        return None, None
    if period == 'today':
        return today, today
    if period in ('7', '30'):
        return today, today + timedelta(days=int(period))
    raise InvalidInput(f"Unknown period '{period}', expected one of {', '.join(PERIODS)}.")


def list_slots(doctor, date_from=None, date_to=None, status=None):
    queryset = TimeSlot.objects.filter(doctor=get_doctor(doctor))
    if date_from:
        queryset = queryset.filter(date__gte=date_from)
    if date_to:
        queryset = queryset.filter(date__lte=date_to)
    if status:
        queryset = queryset.filter(status=_status(TimeSlot.Status, status))
    return queryset.select_related('service', 'appointment').order_by('date', 'start_time')


def group_slots_by_date(slots):
    """Ordered mapping of date -> slots for that date, earliest date first."""
    grouped = OrderedDict()
    for slot in sorted(slots, key=lambda s: (s.date, s.start_time)):
        grouped.setdefault(slot.date, []).append(slot)
    return grouped


def _day_bounds(date_from, date_to):
    start = timezone.make_aware(datetime.combine(date_from, time.min)) if date_from else None
    end = timezone.make_aware(datetime.combine(date_to + timedelta(days=1), time.min)) if date_to else None
    return start, end


def list_appointments(date_from=None, date_to=None, status=None, doctor=None):
    """
    Appointments filtered by scheduled date (inclusive), status and doctor.

    A date filter excludes appointments that have no start time yet.
    """
    queryset = Appointment.objects.select_related(
        'owner', 'doctor__user', 'doctor__specialization', 'service',
        'desired_doctor__user', 'desired_service',
    )
    start, end = _day_bounds(date_from, date_to)
    if start:
        queryset = queryset.filter(starts_at__gte=start)
    if end:
        queryset = queryset.filter(starts_at__lt=end)
    if status:
        queryset = queryset.filter(status=_status(Appointment.Status, status))
    if doctor is not None:
        queryset = queryset.filter(doctor=get_doctor(doctor))
    return queryset.order_by('starts_at', 'created_at')


def pending_requests():
    """The registrar's intake queue: requested appointments, oldest first."""
    return Appointment.objects.filter(
        status=Appointment.Status.REQUESTED
    ).select_related('owner', 'desired_doctor__user', 'desired_service').order_by('created_at')


def weekly_grid(week_anchor, doctor=None):
    """
    Bucket the week's appointments by (day_index, hour).

    `day_index` is 0 for Monday of the week containing `week_anchor`; `hour`
    is the local hour of `starts_at`.
    """
    monday = week_start(week_anchor)
    appointments = list_appointments(
        date_from=monday,
        date_to=monday + timedelta(days=6),
        doctor=doctor,
    )

    grid = defaultdict(list)
    for appointment in appointments:
        local = timezone.localtime(appointment.starts_at)
        day_index = (local.date() - monday).days
        if 0 <= day_index <= 6:
            grid[(day_index, local.hour)].append(appointment)
    return dict(grid)


def calendar_hours():
    return list(range(settings.CALENDAR_FIRST_HOUR, settings.CALENDAR_LAST_HOUR + 1))


def appointments_by_specialization(date_from=None, date_to=None, status=None):
    """Group appointments by the assigned doctor's specialization name."""
    grouped = OrderedDict()
    for appointment in list_appointments(date_from=date_from, date_to=date_to, status=status):
        grouped.setdefault(specialization_label(appointment.doctor), []).append(appointment)
    return grouped


def status_counts():
    """Counts of slots and appointments per status, every status present."""
    slots = dict.fromkeys(TimeSlot.Status.values, 0)
    slots.update(TimeSlot.objects.values_list('status').annotate(n=Count('id')).order_by())
    appointments = dict.fromkeys(Appointment.Status.values, 0)
    appointments.update(Appointment.objects.values_list('status').annotate(n=Count('id')).order_by())
    return {'slots': slots, 'appointments': appointments}
