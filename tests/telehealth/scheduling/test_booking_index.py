from datetime import date, datetime

from telehealth.scheduling.booking_index import (
    OccupiedInterval,
    day_bounds,
    find_overlapping_appointment,
    get_occupied_intervals,
)


def test_day_bounds_cover_whole_calendar_day() -> None:
    assert day_bounds(date(2030, 1, 7)) == (datetime(2030, 1, 7, 0, 0), datetime(2030, 1, 8, 0, 0))


def test_occupied_interval_end_time() -> None:
    assert OccupiedInterval(datetime(2030, 1, 7, 9, 0), 60).end_time == datetime(2030, 1, 7, 10, 0)


def test_get_occupied_intervals_returns_only_active_appointments_in_range(
    db,
    make_user,
    make_professional,
    add_appointment,
) -> None:
    professional = make_professional(db)
    patient = make_user(db, 'patient@example.com')
    add_appointment(db, patient.id, professional.id, datetime(2030, 1, 7, 11, 0), duration=60, status='pending')
    add_appointment(db, patient.id, professional.id, datetime(2030, 1, 7, 9, 0), status='confirmed')
    add_appointment(db, patient.id, professional.id, datetime(2030, 1, 7, 10, 0), status='cancelled')
    add_appointment(db, patient.id, professional.id, datetime(2030, 1, 8, 9, 0), status='confirmed')

    intervals = get_occupied_intervals(db, professional.id, *day_bounds(date(2030, 1, 7)))

    assert intervals == [
        OccupiedInterval(datetime(2030, 1, 7, 9, 0), 30),
        OccupiedInterval(datetime(2030, 1, 7, 11, 0), 60),
    ]


def test_find_overlapping_appointment_treats_touching_windows_as_free(
    db,
    make_user,
    make_professional,
    add_appointment,
) -> None:
    professional = make_professional(db)
    patient = make_user(db, 'patient@example.com')
    existing = add_appointment(db, patient.id, professional.id, datetime(2030, 1, 7, 10, 0), duration=60)

    assert find_overlapping_appointment(
        db, professional.id, datetime(2030, 1, 7, 9, 0), datetime(2030, 1, 7, 10, 0)
    ) is None
    assert find_overlapping_appointment(
        db, professional.id, datetime(2030, 1, 7, 11, 0), datetime(2030, 1, 7, 11, 30)
    ) is None
    assert find_overlapping_appointment(
        db, professional.id, datetime(2030, 1, 7, 10, 30), datetime(2030, 1, 7, 11, 0)
    ).id == existing.id
