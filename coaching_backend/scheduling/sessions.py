"""Named daily sessions and appointment granularity.

Sessions are shared by every coach and every weekday. Coaches pick which
sessions they offer per weekday in their availability; the calendar only says
when each session starts and ends.
"""

from dataclasses import dataclass
from datetime import date, time

from coaching_backend.core import config


@dataclass(frozen=True)
class Session:
    session_id: str
    start_time: time
    end_time: time


def parse_time_of_day(value: str) -> time:
    """Parse an ``HH:MM`` string as stored in the working-hours setting."""
    try:
        hours, minutes = value.strip().split(':')
        return time(int(hours), int(minutes))
    except (AttributeError, ValueError) as exc:
        raise ValueError(f'Invalid time of day: {value!r}') from exc


def weekday_index(day: date) -> int:
    """Weekday number with 0 = Sunday, the key convention of ``selected_days``."""
    return (day.weekday() + 1) % 7


class SessionCalendar:
    def __init__(self, sessions: list[Session], duration_minutes: int = config.APPOINTMENT_DURATION_MINUTES):
        if duration_minutes <= 0:
            raise ValueError('Appointment duration must be positive.')
        for session in sessions:
            if session.end_time <= session.start_time:
                raise ValueError(f'Session {session.session_id} must end after it starts.')

        self.duration_minutes = duration_minutes
        self._sessions = tuple(sorted(sessions, key=lambda session: (session.start_time, session.session_id)))
        self._by_id = {session.session_id: session for session in self._sessions}

    @classmethod
    def from_working_hours(
        cls,
        working_hours: dict[str, str],
        duration_minutes: int = config.APPOINTMENT_DURATION_MINUTES,
    ) -> 'SessionCalendar':
        hours = {**config.DEFAULT_WORKING_HOURS, **(working_hours or {})}
        sessions = [
            Session('session1', parse_time_of_day(hours['session1Start']), parse_time_of_day(hours['session1End'])),
            Session('session2', parse_time_of_day(hours['session2Start']), parse_time_of_day(hours['session2End'])),
        ]
        return cls(sessions, duration_minutes)

    @classmethod
    def default(cls) -> 'SessionCalendar':
        return cls.from_working_hours(config.DEFAULT_WORKING_HOURS)

    def sessions_for_day(self, weekday: int) -> tuple[Session, ...]:
        if not 0 <= weekday <= 6:
            raise ValueError(f'Weekday must be between 0 and 6, got {weekday}.')
        return self._sessions

    def session(self, session_id: str) -> Session | None:
        return self._by_id.get(session_id)

    @property
    def session_ids(self) -> tuple[str, ...]:
        return tuple(self._by_id)
