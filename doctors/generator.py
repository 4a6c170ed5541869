"""
Expansion of a recurrence specification into concrete slot candidates.

Nothing here touches the database: `generate()` only walks calendar dates and
times of day, so the same spec always yields the same candidates in the same
order. Persisting candidates is `doctors.services.generate_slots`.
"""
from collections import namedtuple
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import FrozenSet, Iterator, Optional

from config.exceptions import InvalidInput


WEEKDAY_KEYS = ('mon', 'tue', 'wed', 'thu', 'fri', 'sat', 'sun')
WORKING_DAYS = frozenset(WEEKDAY_KEYS[:5])

Candidate = namedtuple('Candidate', ['date', 'start_time', 'end_time'])


@dataclass(frozen=True)
class RecurrenceSpec:
    """Declarative description of a repeating pattern of slots."""

    date_from: date
    date_to: date
    time_from: time
    time_to: time
    step_minutes: int
    weekdays: FrozenSet[str] = field(default=WORKING_DAYS)
    doctor: Optional[object] = None
    service: Optional[object] = None

    def validate(self):
        if self.date_from > self.date_to:
            raise InvalidInput('date_from must not be later than date_to.')
        if self.time_from >= self.time_to:
            raise InvalidInput('time_from must be earlier than time_to.')
        if self.step_minutes is None or self.step_minutes <= 0:
            raise InvalidInput('step_minutes must be a positive number of minutes.')
        unknown = set(self.weekdays) - set(WEEKDAY_KEYS)
        if unknown:
            raise InvalidInput(f"Unknown weekdays: {', '.join(sorted(unknown))}")

    def includes(self, day):
        return WEEKDAY_KEYS[day.weekday()] in self.weekdays


def generate(spec: RecurrenceSpec) -> Iterator[Candidate]:
    """
    Validate `spec` and return a lazy iterator over its candidates.

    Validation happens immediately so a bad spec fails before any slot is
    created; the walk itself only starts when the iterator is consumed.
    """
    spec.validate()
    return _walk(spec)


def _walk(spec):
    step = timedelta(minutes=spec.step_minutes)
    day = spec.date_from
    while day <= spec.date_to:
        if spec.includes(day):
            yield from _walk_day(day, spec.time_from, spec.time_to, step)
        day += timedelta(days=1)


def _walk_day(day, time_from, time_to, step):
    current = datetime.combine(day, time_from)
    day_end = datetime.combine(day, time_to)
    while current + step <= day_end:
        following = current + step
        yield Candidate(day, current.time(), following.time())
        current = following


def auto_week_spec(doctor, today, service=None):
    """Weekdays 10:00-18:00 in one-hour steps for the seven days starting `today`."""
    return RecurrenceSpec(
        date_from=today,
        date_to=today + timedelta(days=6),
        time_from=time(10, 0),
        time_to=time(18, 0),
        step_minutes=60,
        weekdays=WORKING_DAYS,
        doctor=doctor,
        service=service,
    )


def parse_weekdays(value):
    """Accept 'mon,tue' or an iterable of keys; return a frozenset of lowercase keys."""
    if isinstance(value, str):
        value = value.split(',')
    return frozenset(item.strip().lower()[:3] for item in value if item and item.strip())
