"""Expansion of availability windows into bookable slot start times."""

import logging
from datetime import datetime, timedelta
from typing import Iterator

from coaching_backend.scheduling.records import AvailabilityWindow
from coaching_backend.scheduling.sessions import SessionCalendar, weekday_index

logger = logging.getLogger(__name__)


def iterate_session_starts(start: datetime, end: datetime, duration_minutes: int) -> Iterator[datetime]:
    current = start
    step = timedelta(minutes=duration_minutes)
    while current < end:
        yield current
        current += step


def generate_slots(
    availability: AvailabilityWindow,
    now: datetime,
    calendar: SessionCalendar,
) -> Iterator[datetime]:
    """Yield the availability's slot start times after ``now`` in ascending order.

    Each call starts a fresh walk, so the result can be iterated again by
    calling the function again. Already-booked instants are not filtered here;
    that is the conflict checker's job.
    """
    if now > availability.end_date:
        return
    if availability.end_date < availability.start_date:
        logger.debug('Skipping availability %s: window ends before it starts', availability.id)
        return

    start_of_today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    cursor = max(availability.start_date, start_of_today).date()
    last_day = availability.end_date.date()

    while cursor <= last_day:
        selected = availability.selected_days.get(weekday_index(cursor), ())
        day_slots: set[datetime] = set()

        for session in calendar.sessions_for_day(weekday_index(cursor)):
            if session.session_id not in selected:
                continue
            day_slots.update(
                iterate_session_starts(
                    datetime.combine(cursor, session.start_time),
                    datetime.combine(cursor, session.end_time),
                    calendar.duration_minutes,
                )
            )

        for slot in sorted(day_slots):
            if slot > now and availability.start_date <= slot <= availability.end_date:
                yield slot

        cursor += timedelta(days=1)


def generate_candidate_slots(
    availability: AvailabilityWindow,
    now: datetime,
    calendar: SessionCalendar,
) -> list[datetime]:
    return list(generate_slots(availability, now, calendar))
