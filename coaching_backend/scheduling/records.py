"""Plain records handed out by the booking store.

The scheduling core never holds SQLAlchemy instances across calls, so these
stay valid after the session that loaded them is closed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping


def normalize_selected_days(selected_days: Mapping[Any, Any] | None) -> dict[int, tuple[str, ...]]:
    """Coerce JSON-decoded ``{"1": ["session1"]}`` into ``{1: ("session1",)}``."""
    normalized: dict[int, tuple[str, ...]] = {}
    for weekday, sessions in (selected_days or {}).items():
        day = int(weekday)
        if not 0 <= day <= 6:
            raise ValueError(f'Weekday must be between 0 and 6, got {weekday!r}.')
        ordered = tuple(dict.fromkeys(str(session_id) for session_id in sessions or ()))
        if ordered:
            normalized[day] = ordered
    return normalized


@dataclass(frozen=True)
class AvailabilityWindow:
    id: int
    coach_id: int
    start_date: datetime
    end_date: datetime
    selected_days: dict[int, tuple[str, ...]] = field(default_factory=dict)
    status: str = 'approved'

    @classmethod
    def from_model(cls, availability) -> 'AvailabilityWindow':
        return cls(
            id=availability.id,
            coach_id=availability.coach_id,
            start_date=availability.start_date,
            end_date=availability.end_date,
            selected_days=normalize_selected_days(availability.selected_days),
            status=availability.status,
        )


@dataclass(frozen=True)
class BookedAppointment:
    id: int
    customer_id: int
    coach_id: int
    date: datetime
    status: str
    notes: str | None = None

    @classmethod
    def from_model(cls, appointment) -> 'BookedAppointment':
        return cls(
            id=appointment.id,
            customer_id=appointment.customer_id,
            coach_id=appointment.coach_id,
            date=appointment.date,
            status=appointment.status,
            notes=appointment.notes,
        )
