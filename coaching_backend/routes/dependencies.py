from fastapi import HTTPException, Request, status

from coaching_backend.scheduling.service import SchedulingService

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def get_scheduling_service(request: Request) -> SchedulingService:
    service = getattr(request.app.state, 'scheduling', None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Scheduling service is not running.',
        )
    return service


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )
