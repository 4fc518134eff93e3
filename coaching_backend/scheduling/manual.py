"""Operator-driven booking of one customer into a chosen coach slot."""

import logging
from datetime import datetime
from typing import Callable

from coaching_backend.scheduling.conflicts import BookedSlots, ConflictChecker
from coaching_backend.scheduling.errors import CustomerAlreadyScheduled, InvalidSlot, NotFound, SlotConflict, SlotTaken
from coaching_backend.scheduling.sessions import SessionCalendar
from coaching_backend.scheduling.slots import generate_slots
from coaching_backend.scheduling.store import BookingStore

logger = logging.getLogger(__name__)


class ManualScheduler:
    def __init__(
        self,
        store: BookingStore,
        calendar_loader: Callable[[], SessionCalendar],
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._store = store
        self._calendar_loader = calendar_loader
        self._clock = clock
        self._checker = ConflictChecker(store)

    def _generated_slots(self, coach_id: int, now: datetime) -> set[datetime]:
        calendar = self._calendar_loader()
        slots: set[datetime] = set()
        for availability in self._store.list_approved_availabilities(now, coach_id=coach_id):
            slots.update(generate_slots(availability, now, calendar))
        return slots

    def candidate_slots(self, coach_id: int) -> list[datetime]:
        """Free slots across the coach's approved availabilities, ascending."""
        now = self._clock()
        booked = BookedSlots.from_appointments(self._store.list_future_appointments(now, coach_id=coach_id))
        return sorted(slot for slot in self._generated_slots(coach_id, now) if booked.is_free(coach_id, slot))

    def schedule(self, customer_id: int, coach_id: int, instant: datetime) -> int:
        now = self._clock()
        if not self._store.is_active_customer(customer_id):
            raise NotFound(f'Active customer {customer_id} not found.')
        if self._store.customer_has_future_appointment(customer_id, now):
            raise CustomerAlreadyScheduled(f'Customer {customer_id} already has an upcoming appointment.')
        if instant not in self._generated_slots(coach_id, now):
            raise InvalidSlot(
                f'{instant.isoformat()} is not an open slot in any approved availability of coach {coach_id}.'
            )

        try:
            return self._checker.reserve(customer_id, coach_id, instant)
        except SlotConflict as exc:
            logger.info('Manual booking lost slot %s for coach %s', instant.isoformat(), coach_id)
            raise SlotTaken(coach_id, instant) from exc
