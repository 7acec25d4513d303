from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from telehealth.core.errors import DependencyError
from telehealth.core.rate_limit import daily_booking_allowed

NOW = datetime(2030, 1, 7, 15, 0)


@pytest.fixture
def parties(db, make_user, make_professional):
    return make_professional(db).id, make_user(db, 'patient@example.com').id


def _book(db, add_appointment, parties, count: int, created_at: datetime, status: str = 'pending') -> None:
    professional_id, patient_id = parties
    for index in range(count):
        add_appointment(
            db,
            patient_id,
            professional_id,
            datetime(2030, 2, 1 + index, 10, 0),
            status=status,
            created_at=created_at,
        )


def test_patient_under_limit_may_book(db, parties, add_appointment) -> None:
    _book(db, add_appointment, parties, 4, datetime(2030, 1, 7, 9, 0))

    assert daily_booking_allowed(db, parties[1], now=NOW, limit=5)


def test_patient_at_limit_is_refused(db, parties, add_appointment) -> None:
    _book(db, add_appointment, parties, 5, datetime(2030, 1, 7, 9, 0))

    assert not daily_booking_allowed(db, parties[1], now=NOW, limit=5)


def test_cancelled_bookings_still_count(db, parties, add_appointment) -> None:
    _book(db, add_appointment, parties, 2, datetime(2030, 1, 7, 9, 0), status='cancelled')

    assert not daily_booking_allowed(db, parties[1], now=NOW, limit=2)


def test_bookings_from_previous_day_do_not_count(db, parties, add_appointment) -> None:
    _book(db, add_appointment, parties, 5, datetime(2030, 1, 6, 23, 59))

    assert daily_booking_allowed(db, parties[1], now=NOW, limit=5)


def test_limit_defaults_to_configuration(db, parties, add_appointment, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('telehealth.core.config.MAX_DAILY_BOOKINGS', 1)
    _book(db, add_appointment, parties, 1, datetime(2030, 1, 7, 9, 0))

    assert not daily_booking_allowed(db, parties[1], now=NOW)


def test_store_failure_is_reported(db, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(*_args, **_kwargs):
        raise OperationalError('SELECT', {}, Exception('connection lost'))

    monkeypatch.setattr(db, 'query', broken)

    with pytest.raises(DependencyError):
        daily_booking_allowed(db, 1, now=NOW)
