"""Exceptions raised by the scheduling core."""

from datetime import datetime


class SchedulingError(Exception):
    """Base class for scheduling failures."""


class StoreUnavailable(SchedulingError):
    """The booking store could not be read or written."""


class NotFound(SchedulingError):
    """A referenced availability or appointment does not exist."""


class SlotConflict(SchedulingError):
    """The coach already has an appointment at this instant."""

    def __init__(self, coach_id: int, instant: datetime):
        super().__init__(f'Coach {coach_id} is already booked at {instant.isoformat()}.')
        self.coach_id = coach_id
        self.instant = instant


class SlotTaken(SlotConflict):
    """A manually chosen slot was booked by someone else before commit."""


class InvalidSlot(SchedulingError):
    """A manually chosen instant is not one of the coach's generated slots."""


class AvailabilityOverlap(SchedulingError):
    """A coach submitted a window overlapping one that is pending or approved."""


class StatusChangeNotAllowed(SchedulingError):
    """Only pending availabilities can be approved or rejected."""

    def __init__(self, availability_id: int, status: str):
        super().__init__(f'Availability {availability_id} is already {status}.')
        self.availability_id = availability_id
        self.status = status


class CustomerAlreadyScheduled(SchedulingError):
    """The customer already holds a future appointment."""


class InvalidBooking(SchedulingError):
    """The store refused the appointment for a reason other than a taken slot."""
