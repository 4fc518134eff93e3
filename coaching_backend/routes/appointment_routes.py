from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator

from coaching_backend.core import config
from coaching_backend.models.appointment import STATUSES
from coaching_backend.routes.dependencies import database_unavailable, get_scheduling_service
from coaching_backend.scheduling.errors import NotFound, StoreUnavailable
from coaching_backend.scheduling.records import BookedAppointment
from coaching_backend.scheduling.service import SchedulingService

router = APIRouter(tags=['appointments'])


class AppointmentResponse(BaseModel):
    id: int
    customer_id: int
    coach_id: int
    date: datetime
    status: str
    notes: str | None = None

    @classmethod
    def from_record(cls, appointment: BookedAppointment) -> 'AppointmentResponse':
        return cls(
            id=appointment.id,
            customer_id=appointment.customer_id,
            coach_id=appointment.coach_id,
            date=appointment.date,
            status=appointment.status,
            notes=appointment.notes,
        )


class UpdateAppointmentRequest(BaseModel):
    status: str | None = None
    notes: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in STATUSES:
            raise ValueError('Invalid appointment status.')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if len(normalized) > config.MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

        return normalized


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    coach_id: int | None = Query(default=None),
    customer_id: int | None = Query(default=None),
    upcoming: bool = Query(default=False),
    service: SchedulingService = Depends(get_scheduling_service),
):
    try:
        appointments = service.store.list_appointments(
            coach_id=coach_id,
            customer_id=customer_id,
            since=service.clock() if upcoming else None,
        )
    except StoreUnavailable as exc:
        raise database_unavailable() from exc

    return [AppointmentResponse.from_record(appointment) for appointment in appointments]


@router.patch('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    service: SchedulingService = Depends(get_scheduling_service),
):
    if data.status is None and data.notes is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Nothing to update.',
        )

    try:
        appointment = service.store.update_appointment(appointment_id, status=data.status, notes=data.notes)
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Appointment not found.') from exc
    except StoreUnavailable as exc:
        raise database_unavailable() from exc

    return AppointmentResponse.from_record(appointment)
