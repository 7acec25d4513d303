from datetime import date, datetime, time

import pytest

from telehealth.core.errors import NotFoundError, ValidationError
from telehealth.routes.availability_routes import get_day_availability, parse_calendar_date


@pytest.fixture(autouse=True)
def skip_schema_check(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('telehealth.routes.availability_routes.ensure_database_ready', lambda: None)


def test_parse_calendar_date_accepts_iso_dates() -> None:
    assert parse_calendar_date(' 2030-01-07 ') == date(2030, 1, 7)


@pytest.mark.parametrize('value', ['07/01/2030', '2030-13-01', 'tomorrow'])
def test_parse_calendar_date_rejects_other_formats(value: str) -> None:
    with pytest.raises(ValidationError) as exception_info:
        parse_calendar_date(value)

    assert exception_info.value.message == 'Invalid date format, use YYYY-MM-DD.'


def test_get_day_availability_returns_slots_with_durations(
    db,
    make_user,
    make_professional,
    add_block,
    add_appointment,
) -> None:
    professional = make_professional(db)
    patient = make_user(db, 'patient@example.com')
    add_block(db, professional.id, 1, time(9, 0), time(10, 30))
    add_appointment(db, patient.id, professional.id, datetime(2030, 1, 7, 9, 30))

    response = get_day_availability(
        professional_id=professional.id,
        date_value='2030-01-07',
        current_user=patient,
        db=db,
    )

    assert response.day_of_week == 1
    assert response.date == date(2030, 1, 7)
    assert [(slot.start_time, slot.free, slot.max_free_duration_minutes) for slot in response.slots] == [
        (time(9, 0), True, 30),
        (time(9, 30), False, 0),
        (time(10, 0), True, 30),
    ]


def test_get_day_availability_is_empty_on_unscheduled_day(db, make_user, make_professional) -> None:
    professional = make_professional(db)
    patient = make_user(db, 'patient@example.com')

    response = get_day_availability(
        professional_id=professional.id,
        date_value='2030-01-06',
        current_user=patient,
        db=db,
    )

    assert response.slots == []
    assert response.day_of_week == 0


def test_get_day_availability_hides_unverified_professional(db, make_user, make_professional) -> None:
    professional = make_professional(db, documents_verified=False)
    patient = make_user(db, 'patient@example.com')

    with pytest.raises(NotFoundError):
        get_day_availability(professional_id=professional.id, date_value='2030-01-07', current_user=patient, db=db)
