from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator, model_validator

from coaching_backend.models.availability import APPROVED, PENDING, REJECTED
from coaching_backend.routes.dependencies import database_unavailable, get_scheduling_service
from coaching_backend.scheduling.errors import AvailabilityOverlap, NotFound, StatusChangeNotAllowed, StoreUnavailable
from coaching_backend.scheduling.records import AvailabilityWindow
from coaching_backend.scheduling.service import SchedulingService
from coaching_backend.scheduling.sessions import SessionCalendar

router = APIRouter(tags=['availability'])

AVAILABILITY_STATUSES = (PENDING, APPROVED, REJECTED)
END_OF_DAY = time(23, 59, 59)


class CreateAvailabilityRequest(BaseModel):
    coach_id: int
    start_date: date
    end_date: date
    selected_days: dict[int, list[str]]

    @field_validator('selected_days')
    @classmethod
    def validate_selected_days(cls, value: dict[int, list[str]]) -> dict[int, list[str]]:
        known_sessions = set(SessionCalendar.default().session_ids)
        normalized: dict[int, list[str]] = {}

        for weekday, sessions in value.items():
            if not 0 <= weekday <= 6:
                raise ValueError('Weekdays must be between 0 (Sunday) and 6 (Saturday).')
            unknown = set(sessions) - known_sessions
            if unknown:
                raise ValueError(f'Unknown sessions: {", ".join(sorted(unknown))}.')
            if sessions:
                normalized[weekday] = list(dict.fromkeys(sessions))

        if not normalized:
            raise ValueError('Please select at least one day and session.')

        return normalized

    @model_validator(mode='after')
    def validate_date_range(self) -> 'CreateAvailabilityRequest':
        if self.end_date < self.start_date:
            raise ValueError('End date cannot be before start date.')
        return self


class AvailabilityResponse(BaseModel):
    id: int
    coach_id: int
    start_date: datetime
    end_date: datetime
    selected_days: dict[int, list[str]]
    status: str

    @classmethod
    def from_window(cls, window: AvailabilityWindow) -> 'AvailabilityResponse':
        return cls(
            id=window.id,
            coach_id=window.coach_id,
            start_date=window.start_date,
            end_date=window.end_date,
            selected_days={weekday: list(sessions) for weekday, sessions in window.selected_days.items()},
            status=window.status,
        )


class ApprovalResponse(BaseModel):
    availability: AvailabilityResponse
    appointments_created: int


@router.post('', response_model=AvailabilityResponse, status_code=status.HTTP_201_CREATED)
def create_availability(data: CreateAvailabilityRequest, service: SchedulingService = Depends(get_scheduling_service)):
    try:
        window = service.store.create_availability(
            coach_id=data.coach_id,
            start_date=datetime.combine(data.start_date, time.min),
            end_date=datetime.combine(data.end_date, END_OF_DAY),
            selected_days=data.selected_days,
        )
    except AvailabilityOverlap as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise database_unavailable() from exc

    return AvailabilityResponse.from_window(window)


@router.get('', response_model=list[AvailabilityResponse])
def list_availabilities(
    coach_id: int | None = Query(default=None),
    availability_status: str | None = Query(default=None, alias='status'),
    service: SchedulingService = Depends(get_scheduling_service),
):
    statuses = None
    if availability_status is not None:
        normalized_status = availability_status.strip().lower()
        if normalized_status not in AVAILABILITY_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Invalid availability status.',
            )
        statuses = (normalized_status,)

    try:
        windows = service.store.list_availabilities(coach_id=coach_id, statuses=statuses)
    except StoreUnavailable as exc:
        raise database_unavailable() from exc

    return [AvailabilityResponse.from_window(window) for window in windows]


@router.get('/{availability_id}/slots', response_model=list[datetime])
def list_availability_slots(availability_id: int, service: SchedulingService = Depends(get_scheduling_service)):
    try:
        window = service.store.get_availability(availability_id)
        return service.generate_candidate_slots(window)
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Availability not found.') from exc
    except StoreUnavailable as exc:
        raise database_unavailable() from exc


@router.post('/{availability_id}/approve', response_model=ApprovalResponse)
def approve_availability(availability_id: int, service: SchedulingService = Depends(get_scheduling_service)):
    try:
        window, result = service.approve_availability(availability_id)
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Availability not found.') from exc
    except StatusChangeNotAllowed as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise database_unavailable() from exc

    return ApprovalResponse(
        availability=AvailabilityResponse.from_window(window),
        appointments_created=result.appointments_created,
    )


@router.post('/{availability_id}/reject', response_model=AvailabilityResponse)
def reject_availability(availability_id: int, service: SchedulingService = Depends(get_scheduling_service)):
    try:
        window = service.reject_availability(availability_id)
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Availability not found.') from exc
    except StatusChangeNotAllowed as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise database_unavailable() from exc

    return AvailabilityResponse.from_window(window)


@router.delete('/{availability_id}', response_model=AvailabilityResponse)
def delete_availability(availability_id: int, service: SchedulingService = Depends(get_scheduling_service)):
    try:
        window = service.delete_availability(availability_id)
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Availability not found.') from exc
    except StoreUnavailable as exc:
        raise database_unavailable() from exc

    return AvailabilityResponse.from_window(window)
