"""Batch first-fit assignment of unscheduled customers to free coach slots.

One run walks the customers needing scheduling in id order. For each, the
approved availabilities are tried earliest start first and their slots in
ascending time; the first slot that survives both the snapshot check and the
authoritative re-check is booked. There is no attempt to balance load across
coaches or minimise waiting time.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from coaching_backend.scheduling.conflicts import BookedSlots, ConflictChecker
from coaching_backend.scheduling.errors import InvalidBooking, SlotConflict, StoreUnavailable
from coaching_backend.scheduling.records import AvailabilityWindow
from coaching_backend.scheduling.sessions import SessionCalendar
from coaching_backend.scheduling.slots import generate_slots
from coaching_backend.scheduling.store import BookingStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass
class AssignmentResult:
    started_at: datetime
    scheduled: dict[int, int] = field(default_factory=dict)
    unscheduled: list[int] = field(default_factory=list)
    already_scheduled: list[int] = field(default_factory=list)

    @property
    def appointments_created(self) -> int:
        return len(self.scheduled)


class AssignmentEngine:
    def __init__(
        self,
        store: BookingStore,
        calendar_loader: Callable[[], SessionCalendar],
        clock: Clock = datetime.now,
    ):
        self._store = store
        self._calendar_loader = calendar_loader
        self._clock = clock
        self._checker = ConflictChecker(store)

    def run(self) -> AssignmentResult:
        now = self._clock()
        result = AssignmentResult(started_at=now)

        # Working hours are re-read per run so settings changes apply to the next run only.
        calendar = self._calendar_loader()
        customers = self._store.list_customers_needing_scheduling(now)
        supply = self._store.list_approved_availabilities(now)
        booked = BookedSlots.from_appointments(self._store.list_future_appointments(now))

        logger.info(
            'Assignment run started: %d customers, %d availabilities, %d booked slots',
            len(customers),
            len(supply),
            len(booked),
        )

        for customer_id in customers:
            try:
                if self._store.customer_has_future_appointment(customer_id, now):
                    result.already_scheduled.append(customer_id)
                    continue
            except StoreUnavailable:
                logger.warning('Could not re-check customer %s, leaving unscheduled', customer_id, exc_info=True)
                result.unscheduled.append(customer_id)
                continue

            appointment_id = self._assign(customer_id, supply, calendar, booked, now)
            if appointment_id is None:
                logger.debug('No free slot for customer %s', customer_id)
                result.unscheduled.append(customer_id)
            else:
                result.scheduled[customer_id] = appointment_id

        logger.info(
            'Assignment run finished: %d appointments created, %d customers unscheduled',
            result.appointments_created,
            len(result.unscheduled),
        )
        return result

    def _assign(
        self,
        customer_id: int,
        supply: list[AvailabilityWindow],
        calendar: SessionCalendar,
        booked: BookedSlots,
        now: datetime,
    ) -> int | None:
        for availability in supply:
            for slot in generate_slots(availability, now, calendar):
                if not booked.is_free(availability.coach_id, slot):
                    continue

                try:
                    appointment_id = self._checker.reserve(customer_id, availability.coach_id, slot)
                except SlotConflict:
                    logger.debug('Slot %s for coach %s was just taken', slot.isoformat(), availability.coach_id)
                    booked.add(availability.coach_id, slot)
                    continue
                except (StoreUnavailable, InvalidBooking):
                    logger.warning(
                        'Could not book slot %s for coach %s, trying the next one',
                        slot.isoformat(),
                        availability.coach_id,
                        exc_info=True,
                    )
                    continue

                booked.add(availability.coach_id, slot)
                return appointment_id

        return None
