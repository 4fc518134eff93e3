from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from coaching_backend.models.availability import APPROVED, PENDING, REJECTED
from coaching_backend.scheduling.errors import (
    AvailabilityOverlap,
    InvalidBooking,
    NotFound,
    SlotConflict,
    StatusChangeNotAllowed,
    StoreUnavailable,
)
from coaching_backend.scheduling.store import BookingStore

NOW = datetime(2024, 1, 1, 10, 0)


@pytest.fixture
def store(session_factory):
    return BookingStore(session_factory, retry_attempts=1, retry_max_wait=0)


def test_customers_with_future_appointments_do_not_need_scheduling(store, make_user, make_appointment) -> None:
    coach = make_user('coach')
    booked = make_user('customer')
    waiting = make_user('customer')
    lapsed = make_user('customer')
    make_user('customer', status='inactive')
    make_appointment(booked.id, coach.id, datetime(2024, 1, 2, 17, 0))
    make_appointment(lapsed.id, coach.id, datetime(2023, 12, 28, 17, 0))

    assert store.list_customers_needing_scheduling(NOW) == [waiting.id, lapsed.id]


def test_approved_availabilities_are_ordered_by_start_date(store, make_user, make_availability) -> None:
    coach = make_user('coach')
    later = make_availability(coach.id, datetime(2024, 2, 1), datetime(2024, 2, 28), {1: ['session1']})
    earlier = make_availability(coach.id, datetime(2024, 1, 1), datetime(2024, 1, 31), {1: ['session1']})
    make_availability(coach.id, datetime(2023, 11, 1), datetime(2023, 11, 30), {1: ['session1']})
    make_availability(coach.id, datetime(2024, 3, 1), datetime(2024, 3, 31), {1: ['session1']}, status=PENDING)

    windows = store.list_approved_availabilities(NOW)

    assert [window.id for window in windows] == [earlier.id, later.id]
    assert windows[0].selected_days == {1: ('session1',)}


def test_create_appointment_rejects_duplicate_coach_slot(store, make_user) -> None:
    coach = make_user('coach')
    first = make_user('customer')
    second = make_user('customer')
    slot = datetime(2024, 1, 1, 17, 0)

    store.create_appointment(first.id, coach.id, slot)

    with pytest.raises(SlotConflict):
        store.create_appointment(second.id, coach.id, slot)
    assert store.appointment_exists(coach.id, slot)
    assert not store.appointment_exists(coach.id, datetime(2024, 1, 1, 17, 15))


def test_same_instant_is_free_for_a_different_coach(store, make_user) -> None:
    first_coach = make_user('coach')
    second_coach = make_user('coach')
    customer = make_user('customer')
    other = make_user('customer')
    slot = datetime(2024, 1, 1, 17, 0)

    store.create_appointment(customer.id, first_coach.id, slot)
    store.create_appointment(other.id, second_coach.id, slot)

    assert len(store.list_future_appointments(NOW)) == 2
    assert len(store.list_future_appointments(NOW, coach_id=second_coach.id)) == 1


def test_reads_retry_transient_failures(session_factory, make_user) -> None:
    customer = make_user('customer')
    calls = {'count': 0}

    def flaky_factory():
        calls['count'] += 1
        if calls['count'] == 1:
            raise OperationalError('SELECT 1', {}, Exception('connection reset'))
        return session_factory()

    store = BookingStore(flaky_factory, retry_attempts=3, retry_max_wait=0)

    assert store.list_customers_needing_scheduling(NOW) == [customer.id]
    assert calls['count'] == 2


def test_reads_raise_store_unavailable_after_retries(session_factory) -> None:
    def broken_factory():
        raise OperationalError('SELECT 1', {}, Exception('database is down'))

    store = BookingStore(broken_factory, retry_attempts=2, retry_max_wait=0)

    with pytest.raises(StoreUnavailable):
        store.list_approved_availabilities(NOW)


def test_create_availability_refuses_overlapping_window(store, make_user, make_availability) -> None:
    coach = make_user('coach')
    make_availability(coach.id, datetime(2024, 1, 1), datetime(2024, 1, 31, 23, 59, 59), {1: ['session1']})

    with pytest.raises(AvailabilityOverlap):
        store.create_availability(coach.id, datetime(2024, 1, 15), datetime(2024, 2, 15), {2: ['session1']})


def test_rejected_window_does_not_block_new_submission(store, make_user, make_availability) -> None:
    coach = make_user('coach')
    make_availability(
        coach.id, datetime(2024, 1, 1), datetime(2024, 1, 31, 23, 59, 59), {1: ['session1']}, status=REJECTED
    )

    window = store.create_availability(coach.id, datetime(2024, 1, 15), datetime(2024, 2, 15), {'2': ['session1']})

    assert window.status == PENDING
    assert window.selected_days == {2: ('session1',)}


def test_set_status_of_missing_availability_raises_not_found(store) -> None:
    with pytest.raises(NotFound):
        store.set_availability_status(404, REJECTED)


def test_update_appointment_records_outcome_and_notes(store, make_user, make_appointment) -> None:
    coach = make_user('coach')
    customer = make_user('customer')
    appointment = make_appointment(customer.id, coach.id, datetime(2024, 1, 1, 17, 0))

    updated = store.update_appointment(appointment.id, status='completed', notes='Worked on goals.')

    assert updated.status == 'completed'
    assert updated.notes == 'Worked on goals.'


def test_create_appointment_maps_other_integrity_errors_to_invalid_booking(store, make_user) -> None:
    customer = make_user('customer')

    with pytest.raises(InvalidBooking):
        store.create_appointment(customer.id, None, datetime(2024, 1, 1, 17, 0))


def test_is_active_customer_only_matches_active_customers(store, make_user) -> None:
    customer = make_user('customer')
    inactive = make_user('customer', status='inactive')
    coach = make_user('coach')

    assert store.is_active_customer(customer.id)
    assert not store.is_active_customer(inactive.id)
    assert not store.is_active_customer(coach.id)
    assert not store.is_active_customer(9999)


def test_rejected_window_cannot_be_approved_over_a_newer_window(store, make_user, make_availability) -> None:
    coach = make_user('coach')
    rejected = make_availability(
        coach.id, datetime(2024, 1, 1), datetime(2024, 1, 31, 23, 59, 59), {1: ['session1']}, status=REJECTED
    )
    newer = store.create_availability(
        coach.id, datetime(2024, 1, 10), datetime(2024, 1, 20, 23, 59, 59), {3: ['session2']}
    )
    store.set_availability_status(newer.id, APPROVED)

    with pytest.raises(StatusChangeNotAllowed):
        store.set_availability_status(rejected.id, APPROVED)

    approved = store.list_availabilities(coach_id=coach.id, statuses=(APPROVED,))
    assert [window.id for window in approved] == [newer.id]


@pytest.mark.parametrize('current', [APPROVED, REJECTED])
@pytest.mark.parametrize('target', [APPROVED, REJECTED])
def test_only_pending_windows_change_status(store, make_user, make_availability, current, target) -> None:
    coach = make_user('coach')
    availability = make_availability(
        coach.id, datetime(2024, 1, 1), datetime(2024, 1, 31), {1: ['session1']}, status=current
    )

    with pytest.raises(StatusChangeNotAllowed):
        store.set_availability_status(availability.id, target)

    assert store.get_availability(availability.id).status == current


def test_delete_availability_keeps_booked_appointments(store, make_user, make_availability, make_appointment) -> None:
    coach = make_user('coach')
    customer = make_user('customer')
    availability = make_availability(coach.id, datetime(2024, 1, 1), datetime(2024, 1, 31), {1: ['session1']})
    make_appointment(customer.id, coach.id, datetime(2024, 1, 1, 17, 0))

    deleted = store.delete_availability(availability.id)

    assert deleted.id == availability.id
    with pytest.raises(NotFound):
        store.get_availability(availability.id)
    with pytest.raises(NotFound):
        store.delete_availability(availability.id)
    assert store.appointment_exists(coach.id, datetime(2024, 1, 1, 17, 0))
