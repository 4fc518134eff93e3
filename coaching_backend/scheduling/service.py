"""Long-lived scheduling service wiring the store, engine and controller together."""

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import sessionmaker

from coaching_backend.core import config
from coaching_backend.models.availability import APPROVED, REJECTED
from coaching_backend.scheduling.auto import AutoScheduler, RepeatingTimer, TimerFactory
from coaching_backend.scheduling.engine import AssignmentEngine, AssignmentResult
from coaching_backend.scheduling.manual import ManualScheduler
from coaching_backend.scheduling.records import AvailabilityWindow
from coaching_backend.scheduling.settings import SettingsStore
from coaching_backend.scheduling.slots import generate_candidate_slots
from coaching_backend.scheduling.store import BookingStore

logger = logging.getLogger(__name__)


class SchedulingService:
    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Callable[[], datetime] = datetime.now,
        timer_factory: TimerFactory = RepeatingTimer,
        interval_seconds: float = config.AUTO_SCHEDULING_INTERVAL_SECONDS,
        retry_attempts: int = config.STORE_RETRY_ATTEMPTS,
    ):
        self.clock = clock
        self.store = BookingStore(session_factory, retry_attempts=retry_attempts)
        self.settings = SettingsStore(session_factory)
        self.engine = AssignmentEngine(self.store, self.settings.load_calendar, clock)
        self.manual = ManualScheduler(self.store, self.settings.load_calendar, clock)
        self.auto = AutoScheduler(self.trigger_scheduling, self.settings, interval_seconds, timer_factory)

    def start(self) -> None:
        self.auto.start()

    def shutdown(self) -> None:
        self.auto.shutdown()

    def trigger_scheduling(self) -> AssignmentResult:
        return self.engine.run()

    def set_auto_scheduling(self, enabled: bool) -> AssignmentResult | None:
        return self.auto.set_enabled(enabled)

    def get_auto_scheduling_state(self) -> bool:
        return self.auto.is_enabled()

    def generate_candidate_slots(self, availability: AvailabilityWindow, now: datetime | None = None) -> list[datetime]:
        return generate_candidate_slots(availability, now or self.clock(), self.settings.load_calendar())

    def candidate_slots_for_coach(self, coach_id: int) -> list[datetime]:
        return self.manual.candidate_slots(coach_id)

    def schedule_manual(self, customer_id: int, coach_id: int, instant: datetime) -> int:
        return self.manual.schedule(customer_id, coach_id, instant)

    def approve_availability(self, availability_id: int) -> tuple[AvailabilityWindow, AssignmentResult]:
        availability = self.store.set_availability_status(availability_id, APPROVED)
        return availability, self.auto.on_supply_changed(f'approval of availability {availability_id}')

    def reject_availability(self, availability_id: int) -> AvailabilityWindow:
        return self.store.set_availability_status(availability_id, REJECTED)

    def delete_availability(self, availability_id: int) -> AvailabilityWindow:
        return self.store.delete_availability(availability_id)

    def update_working_hours(self, working_hours: dict[str, str]) -> AssignmentResult:
        self.settings.set_working_hours(working_hours)
        return self.auto.on_supply_changed('working hours change')
