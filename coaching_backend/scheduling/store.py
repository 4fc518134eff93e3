"""Read/write façade over availability and appointment records.

Every call opens and closes its own short-lived session. Nothing here holds a
lock or a long transaction: the unique ``(coach_id, date)`` index is what stops
two writers from booking the same coach slot, and losing that race surfaces as
``SlotConflict``.
"""

import logging
from datetime import datetime
from typing import Callable, TypeVar

from sqlalchemy import exists
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from coaching_backend.core import config
from coaching_backend.models.appointment import SCHEDULED, Appointment
from coaching_backend.models.availability import APPROVED, PENDING, Availability
from coaching_backend.models.user import User
from coaching_backend.scheduling.errors import (
    AvailabilityOverlap,
    InvalidBooking,
    NotFound,
    SlotConflict,
    StatusChangeNotAllowed,
    StoreUnavailable,
)
from coaching_backend.scheduling.records import AvailabilityWindow, BookedAppointment, normalize_selected_days

logger = logging.getLogger(__name__)

T = TypeVar('T')

CUSTOMER_ROLE = 'customer'
ACTIVE_STATUS = 'active'
COACH_SLOT_CONSTRAINT = 'uq_appointments_coach_date'


def _is_coach_slot_violation(exc: IntegrityError) -> bool:
    """True when the ``(coach_id, date)`` unique index rejected the insert."""
    diag = getattr(exc.orig, 'diag', None)
    constraint_name = getattr(diag, 'constraint_name', None)
    if constraint_name is not None:
        return constraint_name == COACH_SLOT_CONSTRAINT

    message = str(exc.orig)
    # SQLite names the columns instead of the index.
    return COACH_SLOT_CONSTRAINT in message or 'appointments.coach_id, appointments.date' in message


class BookingStore:
    def __init__(
        self,
        session_factory: sessionmaker,
        retry_attempts: int = config.STORE_RETRY_ATTEMPTS,
        retry_max_wait: float = config.STORE_RETRY_MAX_WAIT_SECONDS,
    ):
        self._session_factory = session_factory
        self._retry_attempts = retry_attempts
        self._retry_max_wait = retry_max_wait

    def _read(self, operation: Callable[[Session], T]) -> T:
        """Run a read-only query, retrying transient database errors."""
        try:
            for attempt in Retrying(
                stop=stop_after_attempt(self._retry_attempts),
                wait=wait_exponential(multiplier=0.25, max=self._retry_max_wait),
                retry=retry_if_exception_type(SQLAlchemyError),
                reraise=True,
            ):
                with attempt:
                    db = self._session_factory()
                    try:
                        return operation(db)
                    finally:
                        db.close()
        except SQLAlchemyError as exc:
            raise StoreUnavailable('Database unavailable. Verify DATABASE_URL and database credentials.') from exc

    def is_active_customer(self, customer_id: int) -> bool:
        def query(db: Session) -> bool:
            return db.query(
                exists().where(
                    User.id == customer_id,
                    User.role == CUSTOMER_ROLE,
                    User.status == ACTIVE_STATUS,
                )
            ).scalar()

        return bool(self._read(query))

    def list_customers_needing_scheduling(self, now: datetime) -> list[int]:
        def query(db: Session) -> list[int]:
            has_upcoming = exists().where(
                Appointment.customer_id == User.id,
                Appointment.date >= now,
            )
            rows = db.query(User.id).filter(
                User.role == CUSTOMER_ROLE,
                User.status == ACTIVE_STATUS,
                ~has_upcoming,
            ).order_by(User.id.asc()).all()
            return [row.id for row in rows]

        return self._read(query)

    def list_approved_availabilities(self, now: datetime, coach_id: int | None = None) -> list[AvailabilityWindow]:
        """Approved windows that have not fully elapsed, earliest start first."""
        def query(db: Session) -> list[AvailabilityWindow]:
            availabilities = db.query(Availability).filter(
                Availability.status == APPROVED,
                Availability.end_date >= now,
            )
            if coach_id is not None:
                availabilities = availabilities.filter(Availability.coach_id == coach_id)
            return [
                AvailabilityWindow.from_model(availability)
                for availability in availabilities.order_by(Availability.start_date.asc(), Availability.id.asc()).all()
            ]

        return self._read(query)

    def list_future_appointments(self, now: datetime, coach_id: int | None = None) -> list[BookedAppointment]:
        def query(db: Session) -> list[BookedAppointment]:
            appointments = db.query(Appointment).filter(Appointment.date >= now)
            if coach_id is not None:
                appointments = appointments.filter(Appointment.coach_id == coach_id)
            return [
                BookedAppointment.from_model(appointment)
                for appointment in appointments.order_by(Appointment.date.asc(), Appointment.id.asc()).all()
            ]

        return self._read(query)

    def appointment_exists(self, coach_id: int, instant: datetime) -> bool:
        def query(db: Session) -> bool:
            return db.query(
                exists().where(Appointment.coach_id == coach_id, Appointment.date == instant)
            ).scalar()

        return bool(self._read(query))

    def customer_has_future_appointment(self, customer_id: int, now: datetime) -> bool:
        def query(db: Session) -> bool:
            return db.query(
                exists().where(Appointment.customer_id == customer_id, Appointment.date >= now)
            ).scalar()

        return bool(self._read(query))

    def create_appointment(self, customer_id: int, coach_id: int, instant: datetime) -> int:
        """Insert a scheduled appointment; a taken ``(coach_id, instant)`` raises ``SlotConflict``."""
        db = self._session_factory()
        try:
            appointment = Appointment(
                customer_id=customer_id,
                coach_id=coach_id,
                date=instant,
                status=SCHEDULED,
            )
            db.add(appointment)
            db.commit()
            return appointment.id
        except IntegrityError as exc:
            db.rollback()
            if _is_coach_slot_violation(exc):
                raise SlotConflict(coach_id, instant) from exc
            raise InvalidBooking(
                f'Appointment for customer {customer_id} with coach {coach_id} was refused by the database.'
            ) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreUnavailable('Database unavailable. Verify DATABASE_URL and database credentials.') from exc
        finally:
            db.close()

    def list_appointments(
        self,
        coach_id: int | None = None,
        customer_id: int | None = None,
        since: datetime | None = None,
    ) -> list[BookedAppointment]:
        def query(db: Session) -> list[BookedAppointment]:
            appointments = db.query(Appointment)
            if coach_id is not None:
                appointments = appointments.filter(Appointment.coach_id == coach_id)
            if customer_id is not None:
                appointments = appointments.filter(Appointment.customer_id == customer_id)
            if since is not None:
                appointments = appointments.filter(Appointment.date >= since)
            return [
                BookedAppointment.from_model(appointment)
                for appointment in appointments.order_by(Appointment.date.asc(), Appointment.id.asc()).all()
            ]

        return self._read(query)

    def update_appointment(
        self,
        appointment_id: int,
        status: str | None = None,
        notes: str | None = None,
    ) -> BookedAppointment:
        db = self._session_factory()
        try:
            appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
            if appointment is None:
                raise NotFound(f'Appointment {appointment_id} not found.')
            if status is not None:
                appointment.status = status
            if notes is not None:
                appointment.notes = notes
            db.commit()
            db.refresh(appointment)
            return BookedAppointment.from_model(appointment)
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreUnavailable('Database unavailable. Verify DATABASE_URL and database credentials.') from exc
        finally:
            db.close()

    def list_availabilities(
        self,
        coach_id: int | None = None,
        statuses: tuple[str, ...] | None = None,
    ) -> list[AvailabilityWindow]:
        def query(db: Session) -> list[AvailabilityWindow]:
            availabilities = db.query(Availability)
            if coach_id is not None:
                availabilities = availabilities.filter(Availability.coach_id == coach_id)
            if statuses:
                availabilities = availabilities.filter(Availability.status.in_(statuses))
            return [
                AvailabilityWindow.from_model(availability)
                for availability in availabilities.order_by(Availability.start_date.asc(), Availability.id.asc()).all()
            ]

        return self._read(query)

    def get_availability(self, availability_id: int) -> AvailabilityWindow:
        def query(db: Session) -> AvailabilityWindow | None:
            availability = db.query(Availability).filter(Availability.id == availability_id).first()
            return AvailabilityWindow.from_model(availability) if availability else None

        window = self._read(query)
        if window is None:
            raise NotFound(f'Availability {availability_id} not found.')
        return window

    def create_availability(
        self,
        coach_id: int,
        start_date: datetime,
        end_date: datetime,
        selected_days: dict,
    ) -> AvailabilityWindow:
        """Submit a pending window, refusing overlap with the coach's live windows."""
        db = self._session_factory()
        try:
            overlapping = db.query(Availability).filter(
                Availability.coach_id == coach_id,
                Availability.status.in_((PENDING, APPROVED)),
                Availability.start_date <= end_date,
                Availability.end_date >= start_date,
            ).first()
            if overlapping:
                raise AvailabilityOverlap(
                    f'Selected dates overlap with existing availability {overlapping.id}.'
                )

            availability = Availability(
                coach_id=coach_id,
                start_date=start_date,
                end_date=end_date,
                selected_days={
                    str(weekday): list(sessions)
                    for weekday, sessions in normalize_selected_days(selected_days).items()
                },
                status=PENDING,
            )
            db.add(availability)
            db.commit()
            db.refresh(availability)
            return AvailabilityWindow.from_model(availability)
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreUnavailable('Database unavailable. Verify DATABASE_URL and database credentials.') from exc
        finally:
            db.close()

    def set_availability_status(self, availability_id: int, status: str) -> AvailabilityWindow:
        db = self._session_factory()
        try:
            availability = db.query(Availability).filter(Availability.id == availability_id).first()
            if availability is None:
                raise NotFound(f'Availability {availability_id} not found.')
            if availability.status != PENDING:
                raise StatusChangeNotAllowed(availability_id, availability.status)
            availability.status = status
            db.commit()
            db.refresh(availability)
            logger.info('Availability %s is now %s', availability_id, status)
            return AvailabilityWindow.from_model(availability)
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreUnavailable('Database unavailable. Verify DATABASE_URL and database credentials.') from exc
        finally:
            db.close()

    def delete_availability(self, availability_id: int) -> AvailabilityWindow:
        """Remove a window. Appointments already booked from it are kept."""
        db = self._session_factory()
        try:
            availability = db.query(Availability).filter(Availability.id == availability_id).first()
            if availability is None:
                raise NotFound(f'Availability {availability_id} not found.')
            window = AvailabilityWindow.from_model(availability)
            db.delete(availability)
            db.commit()
            logger.info('Availability %s deleted', availability_id)
            return window
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreUnavailable('Database unavailable. Verify DATABASE_URL and database credentials.') from exc
        finally:
            db.close()
