from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from coaching_backend.routes.dependencies import database_unavailable, get_scheduling_service
from coaching_backend.scheduling.engine import AssignmentResult
from coaching_backend.scheduling.errors import (
    CustomerAlreadyScheduled,
    InvalidBooking,
    InvalidSlot,
    NotFound,
    SlotTaken,
    StoreUnavailable,
)
from coaching_backend.scheduling.service import SchedulingService
from coaching_backend.scheduling.sessions import parse_time_of_day

router = APIRouter(tags=['scheduling'])


class SchedulingRunResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    appointments_created: int = Field(alias='appointmentsCreated')
    scheduled: dict[int, int]
    unscheduled: list[int]

    @classmethod
    def from_result(cls, result: AssignmentResult) -> 'SchedulingRunResponse':
        return cls(
            appointments_created=result.appointments_created,
            scheduled=result.scheduled,
            unscheduled=result.unscheduled,
        )


class AutoSchedulingRequest(BaseModel):
    enabled: bool


class AutoSchedulingResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool
    appointments_created: int | None = Field(default=None, alias='appointmentsCreated')


class ManualSchedulingRequest(BaseModel):
    customer_id: int
    coach_id: int
    date: datetime

    @field_validator('date')
    @classmethod
    def validate_date(cls, value: datetime) -> datetime:
        if value.tzinfo is not None:
            raise ValueError('Slot times are local wall-clock times without a timezone.')
        if value.second or value.microsecond:
            raise ValueError('Slot times must fall on a whole minute.')
        return value


class ManualSchedulingResponse(BaseModel):
    appointment_id: int
    customer_id: int
    coach_id: int
    date: datetime


class WorkingHours(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session1_start: str = Field(alias='session1Start')
    session1_end: str = Field(alias='session1End')
    session2_start: str = Field(alias='session2Start')
    session2_end: str = Field(alias='session2End')

    @field_validator('session1_start', 'session1_end', 'session2_start', 'session2_end')
    @classmethod
    def validate_time_of_day(cls, value: str) -> str:
        parsed = parse_time_of_day(value)
        return parsed.strftime('%H:%M')

    def as_setting(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


@router.post('/trigger', response_model=SchedulingRunResponse)
def trigger_scheduling(service: SchedulingService = Depends(get_scheduling_service)):
    try:
        result = service.trigger_scheduling()
    except StoreUnavailable as exc:
        raise database_unavailable() from exc
    return SchedulingRunResponse.from_result(result)


@router.get('/auto', response_model=AutoSchedulingResponse)
def get_auto_scheduling(service: SchedulingService = Depends(get_scheduling_service)):
    try:
        return AutoSchedulingResponse(enabled=service.get_auto_scheduling_state())
    except StoreUnavailable as exc:
        raise database_unavailable() from exc


@router.put('/auto', response_model=AutoSchedulingResponse)
def set_auto_scheduling(data: AutoSchedulingRequest, service: SchedulingService = Depends(get_scheduling_service)):
    try:
        result = service.set_auto_scheduling(data.enabled)
    except StoreUnavailable as exc:
        raise database_unavailable() from exc
    return AutoSchedulingResponse(
        enabled=data.enabled,
        appointments_created=result.appointments_created if result else None,
    )


@router.get('/slots', response_model=list[datetime])
def list_candidate_slots(
    coach_id: int = Query(...),
    service: SchedulingService = Depends(get_scheduling_service),
):
    try:
        return service.candidate_slots_for_coach(coach_id)
    except StoreUnavailable as exc:
        raise database_unavailable() from exc


@router.post('/manual', response_model=ManualSchedulingResponse, status_code=status.HTTP_201_CREATED)
def schedule_manual(data: ManualSchedulingRequest, service: SchedulingService = Depends(get_scheduling_service)):
    try:
        appointment_id = service.schedule_manual(data.customer_id, data.coach_id, data.date)
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except CustomerAlreadyScheduled as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except (InvalidSlot, InvalidBooking) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except SlotTaken as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='This slot has just been booked. Please select another time.',
        ) from exc
    except StoreUnavailable as exc:
        raise database_unavailable() from exc

    return ManualSchedulingResponse(
        appointment_id=appointment_id,
        customer_id=data.customer_id,
        coach_id=data.coach_id,
        date=data.date,
    )


@router.get('/working-hours', response_model=WorkingHours)
def get_working_hours(service: SchedulingService = Depends(get_scheduling_service)):
    try:
        return WorkingHours.model_validate(service.settings.get_working_hours())
    except StoreUnavailable as exc:
        raise database_unavailable() from exc


@router.put('/working-hours', response_model=SchedulingRunResponse)
def update_working_hours(data: WorkingHours, service: SchedulingService = Depends(get_scheduling_service)):
    try:
        result = service.update_working_hours(data.as_setting())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise database_unavailable() from exc
    return SchedulingRunResponse.from_result(result)
