from datetime import date, datetime, time, timedelta

import pytest

from coaching_backend.scheduling.records import AvailabilityWindow, normalize_selected_days
from coaching_backend.scheduling.sessions import Session, SessionCalendar, parse_time_of_day, weekday_index
from coaching_backend.scheduling.slots import generate_candidate_slots, generate_slots

JANUARY_START = datetime(2024, 1, 1)
JANUARY_END = datetime(2024, 1, 31, 23, 59, 59)


def make_window(selected_days, start=JANUARY_START, end=JANUARY_END, availability_id=1, coach_id=7):
    return AvailabilityWindow(
        id=availability_id,
        coach_id=coach_id,
        start_date=start,
        end_date=end,
        selected_days=normalize_selected_days(selected_days),
    )


def test_weekday_index_counts_from_sunday() -> None:
    assert weekday_index(date(2024, 1, 7)) == 0
    assert weekday_index(date(2024, 1, 1)) == 1
    assert weekday_index(date(2024, 1, 6)) == 6


def test_default_calendar_has_two_evening_sessions() -> None:
    calendar = SessionCalendar.default()

    assert calendar.duration_minutes == 15
    assert calendar.sessions_for_day(3) == (
        Session('session1', time(17, 0), time(20, 0)),
        Session('session2', time(20, 0), time(22, 0)),
    )


def test_calendar_rejects_session_ending_before_it_starts() -> None:
    with pytest.raises(ValueError):
        SessionCalendar.from_working_hours({'session1Start': '20:00', 'session1End': '17:00'})


@pytest.mark.parametrize('value', ['17', '25:00', 'five', ''])
def test_parse_time_of_day_rejects_malformed_values(value: str) -> None:
    with pytest.raises(ValueError):
        parse_time_of_day(value)


def test_first_slot_is_session_start_on_the_current_day() -> None:
    window = make_window({1: ['session1']})

    slots = generate_candidate_slots(window, datetime(2024, 1, 1, 10, 0), SessionCalendar.default())

    assert slots[0] == datetime(2024, 1, 1, 17, 0)
    assert slots[1] == datetime(2024, 1, 1, 17, 15)
    # Five Mondays in January 2024, twelve quarter hours per three-hour session.
    assert len(slots) == 5 * 12


def test_slots_already_started_today_are_skipped() -> None:
    window = make_window({1: ['session1']})

    slots = generate_candidate_slots(window, datetime(2024, 1, 1, 18, 0), SessionCalendar.default())

    assert slots[0] == datetime(2024, 1, 1, 18, 15)


def test_elapsed_window_yields_nothing() -> None:
    window = make_window({1: ['session1']}, end=datetime(2023, 12, 31, 23, 59, 59))

    assert list(generate_slots(window, datetime(2024, 1, 1, 10, 0), SessionCalendar.default())) == []


def test_inverted_window_yields_nothing() -> None:
    window = make_window({1: ['session1']}, start=datetime(2024, 2, 1), end=datetime(2024, 1, 1))

    assert generate_candidate_slots(window, datetime(2023, 12, 1), SessionCalendar.default()) == []


def test_day_without_selected_sessions_yields_nothing() -> None:
    window = make_window({2: ['session2']}, end=datetime(2024, 1, 1, 23, 59, 59))

    assert generate_candidate_slots(window, datetime(2024, 1, 1, 10, 0), SessionCalendar.default()) == []


def test_unknown_session_ids_are_ignored() -> None:
    window = make_window({1: ['session9', 'session2']}, end=datetime(2024, 1, 1, 23, 59, 59))

    slots = generate_candidate_slots(window, datetime(2024, 1, 1, 10, 0), SessionCalendar.default())

    assert slots == [datetime(2024, 1, 1, 20, 0) + timedelta(minutes=15 * step) for step in range(8)]


def test_window_end_bounds_slots_within_the_last_day() -> None:
    window = make_window({1: ['session1']}, end=datetime(2024, 1, 1, 17, 30))

    slots = generate_candidate_slots(window, datetime(2024, 1, 1, 10, 0), SessionCalendar.default())

    assert slots == [datetime(2024, 1, 1, 17, 0), datetime(2024, 1, 1, 17, 15), datetime(2024, 1, 1, 17, 30)]


def test_generation_can_be_restarted() -> None:
    window = make_window({1: ['session1', 'session2']})
    now = datetime(2024, 1, 10, 9, 0)
    calendar = SessionCalendar.default()

    assert list(generate_slots(window, now, calendar)) == list(generate_slots(window, now, calendar))


def test_overlapping_sessions_do_not_produce_duplicates() -> None:
    calendar = SessionCalendar.from_working_hours({
        'session1Start': '17:00',
        'session1End': '21:00',
        'session2Start': '20:00',
        'session2End': '22:00',
    })
    window = make_window({1: ['session2', 'session1']}, end=datetime(2024, 1, 1, 23, 59, 59))

    slots = generate_candidate_slots(window, datetime(2024, 1, 1, 10, 0), calendar)

    assert len(slots) == len(set(slots)) == 20
    assert slots == sorted(slots)


@pytest.mark.parametrize(
    'now',
    [
        datetime(2023, 12, 20, 8, 0),
        datetime(2024, 1, 1, 10, 0),
        datetime(2024, 1, 3, 20, 7),
        datetime(2024, 1, 17, 21, 45),
        datetime(2024, 1, 31, 23, 0),
    ],
)
@pytest.mark.parametrize(
    'selected_days',
    [
        {1: ['session1']},
        {0: ['session2'], 3: ['session1', 'session2'], 6: ['session1']},
        {day: ['session2', 'session1'] for day in range(7)},
    ],
)
def test_generated_slots_stay_inside_window_and_sessions(now: datetime, selected_days: dict) -> None:
    window = make_window(selected_days, start=datetime(2024, 1, 2, 12, 0))
    calendar = SessionCalendar.default()

    slots = generate_candidate_slots(window, now, calendar)

    assert all(earlier < later for earlier, later in zip(slots, slots[1:]))
    for slot in slots:
        assert window.start_date <= slot <= window.end_date
        assert slot > now
        offered = window.selected_days[weekday_index(slot.date())]
        assert any(
            calendar.session(session_id).start_time <= slot.time() < calendar.session(session_id).end_time
            for session_id in offered
        )
        assert slot.minute % calendar.duration_minutes == 0
