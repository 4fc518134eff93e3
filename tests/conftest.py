import os
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
os.environ.setdefault('AUTO_SCHEDULING_ON_STARTUP', 'false')

from coaching_backend.database import Base  # noqa: E402
from coaching_backend.models.appointment import Appointment  # noqa: E402
from coaching_backend.models.availability import APPROVED, Availability  # noqa: E402
from coaching_backend.models.setting import Setting  # noqa: E402
from coaching_backend.models.user import User  # noqa: E402
from coaching_backend.scheduling.service import SchedulingService  # noqa: E402
from tests.support import FrozenClock, ManualTimer  # noqa: E402

TABLES = [User.__table__, Availability.__table__, Appointment.__table__, Setting.__table__]


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=TABLES)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    # 2024-01-01 is a Monday.
    return FrozenClock(datetime(2024, 1, 1, 10, 0))


@pytest.fixture
def service(session_factory, clock):
    ManualTimer.created = []
    scheduling = SchedulingService(
        session_factory,
        clock=clock,
        timer_factory=ManualTimer,
        interval_seconds=60,
        retry_attempts=1,
    )
    try:
        yield scheduling
    finally:
        scheduling.shutdown()


@pytest.fixture
def make_user(db):
    def _make_user(role: str = 'customer', email: str | None = None, status: str = 'active') -> User:
        user = User(
            email=email or f'{role}{db.query(User).count() + 1}@example.com',
            first_name=role.title(),
            last_name='Tester',
            role=role,
            status=status,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_availability(db):
    def _make_availability(
        coach_id: int,
        start_date: datetime,
        end_date: datetime,
        selected_days: dict,
        status: str = APPROVED,
    ) -> Availability:
        availability = Availability(
            coach_id=coach_id,
            start_date=start_date,
            end_date=end_date,
            selected_days={str(day): sessions for day, sessions in selected_days.items()},
            status=status,
        )
        db.add(availability)
        db.commit()
        db.refresh(availability)
        return availability

    return _make_availability


@pytest.fixture
def make_appointment(db):
    def _make_appointment(customer_id: int, coach_id: int, date: datetime, status: str = 'scheduled') -> Appointment:
        appointment = Appointment(customer_id=customer_id, coach_id=coach_id, date=date, status=status)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make_appointment
