"""Double-booking detection and the optimistic reservation primitive."""

import logging
from datetime import datetime
from typing import Iterable

from coaching_backend.scheduling.errors import SlotConflict
from coaching_backend.scheduling.records import BookedAppointment
from coaching_backend.scheduling.store import BookingStore

logger = logging.getLogger(__name__)


class BookedSlots:
    """Snapshot of booked ``(coach_id, instant)`` pairs taken at the start of a run."""

    def __init__(self, pairs: Iterable[tuple[int, datetime]] = ()):
        self._pairs: set[tuple[int, datetime]] = set(pairs)

    @classmethod
    def from_appointments(cls, appointments: Iterable[BookedAppointment]) -> 'BookedSlots':
        return cls((appointment.coach_id, appointment.date) for appointment in appointments)

    def is_free(self, coach_id: int, instant: datetime) -> bool:
        return (coach_id, instant) not in self._pairs

    def add(self, coach_id: int, instant: datetime) -> None:
        self._pairs.add((coach_id, instant))

    def instants_for(self, coach_id: int) -> set[datetime]:
        return {instant for booked_coach, instant in self._pairs if booked_coach == coach_id}

    def __len__(self) -> int:
        return len(self._pairs)


class ConflictChecker:
    def __init__(self, store: BookingStore):
        self._store = store

    def is_free(self, coach_id: int, instant: datetime) -> bool:
        return not self._store.appointment_exists(coach_id, instant)

    def reserve(self, customer_id: int, coach_id: int, instant: datetime) -> int:
        """Re-check the slot against the store and book it.

        Raises ``SlotConflict`` when the slot is already taken, whether the
        re-check sees it or a concurrent writer wins between re-check and
        insert.
        """
        if not self.is_free(coach_id, instant):
            raise SlotConflict(coach_id, instant)
        appointment_id = self._store.create_appointment(customer_id, coach_id, instant)
        logger.info(
            'Booked appointment %s: customer %s with coach %s at %s',
            appointment_id,
            customer_id,
            coach_id,
            instant.isoformat(),
        )
        return appointment_id
