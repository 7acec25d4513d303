from datetime import datetime

import pytest

from telehealth.core.errors import ValidationError
from telehealth.scheduling.queries import AppointmentFilter, build_professional_summaries, list_appointments

NOW = datetime(2030, 1, 7, 12, 0)


@pytest.fixture
def history(db, make_user, make_professional, add_appointment):
    professional = make_professional(db)
    patient = make_user(db, 'patient@example.com')
    other_patient = make_user(db, 'other@example.com')

    ids = {
        'upcoming_pending': add_appointment(db, patient.id, professional.id, datetime(2030, 1, 9, 10, 0), status='pending').id,
        'upcoming_confirmed': add_appointment(db, patient.id, professional.id, datetime(2030, 1, 8, 10, 0)).id,
        'completed': add_appointment(db, patient.id, professional.id, datetime(2030, 1, 6, 10, 0), status='completed').id,
        'cancelled': add_appointment(db, patient.id, professional.id, datetime(2030, 1, 10, 10, 0), status='cancelled').id,
        'no_show': add_appointment(db, patient.id, professional.id, datetime(2030, 1, 5, 10, 0), status='no_show').id,
        'other_patient': add_appointment(db, other_patient.id, professional.id, datetime(2030, 1, 8, 11, 0)).id,
    }
    return professional, patient, ids


def _ids(page) -> list[int]:
    return [item.appointment.id for item in page.items]


def test_all_filter_lists_newest_first(db, history) -> None:
    _, patient, ids = history

    page = list_appointments(db, patient.id, 'patient', now=NOW)

    assert _ids(page) == [ids['cancelled'], ids['upcoming_pending'], ids['upcoming_confirmed'], ids['completed'], ids['no_show']]
    assert page.total == 5
    assert page.total_pages == 1


@pytest.mark.parametrize(
    ('appointment_filter', 'expected'),
    [
        (AppointmentFilter.UPCOMING, ['upcoming_pending', 'upcoming_confirmed']),
        (AppointmentFilter.PAST, ['completed']),
        (AppointmentFilter.CANCELLED, ['cancelled']),
    ],
)
def test_filters_select_matching_bucket(db, history, appointment_filter: AppointmentFilter, expected: list[str]) -> None:
    _, patient, ids = history

    page = list_appointments(db, patient.id, 'patient', appointment_filter, now=NOW)

    assert _ids(page) == [ids[name] for name in expected]


def test_counts_cover_every_bucket_regardless_of_filter(db, history) -> None:
    _, patient, _ = history

    page = list_appointments(db, patient.id, 'patient', AppointmentFilter.CANCELLED, now=NOW)

    assert page.counts == {'upcoming': 2, 'past': 1, 'cancelled': 1, 'total': 5}


def test_professional_sees_appointments_they_provide(db, history) -> None:
    professional, _, ids = history

    page = list_appointments(db, professional.id, 'professional', AppointmentFilter.UPCOMING, now=NOW)

    assert _ids(page) == [ids['upcoming_pending'], ids['other_patient'], ids['upcoming_confirmed']]
    assert page.counts['total'] == 6


def test_items_carry_professional_summary(db, history) -> None:
    professional, patient, _ = history

    page = list_appointments(db, patient.id, 'patient', now=NOW)
    summary = page.items[0].professional

    assert summary.id == professional.id
    assert (summary.first_name, summary.last_name) == ('Ada', 'Lopez')
    assert summary.specialties == ['anxiety', 'depression']
    assert summary.session_rate == 45.0


def test_pagination_splits_results(db, history) -> None:
    _, patient, ids = history

    first = list_appointments(db, patient.id, 'patient', page=1, page_size=2, now=NOW)
    third = list_appointments(db, patient.id, 'patient', page=3, page_size=2, now=NOW)
    beyond = list_appointments(db, patient.id, 'patient', page=4, page_size=2, now=NOW)

    assert _ids(first) == [ids['cancelled'], ids['upcoming_pending']]
    assert first.total_pages == 3
    assert _ids(third) == [ids['no_show']]
    assert beyond.items == []
    assert beyond.total == 5


def test_empty_history_has_zero_pages(db, make_user) -> None:
    patient = make_user(db, 'new@example.com')

    page = list_appointments(db, patient.id, 'patient', now=NOW)

    assert page.items == []
    assert page.total_pages == 0
    assert page.counts == {'upcoming': 0, 'past': 0, 'cancelled': 0, 'total': 0}


@pytest.mark.parametrize(('page', 'page_size'), [(0, 10), (1, 0), (1, 101)])
def test_invalid_paging_is_rejected(db, page: int, page_size: int) -> None:
    with pytest.raises(ValidationError):
        list_appointments(db, 1, 'patient', page=page, page_size=page_size, now=NOW)


def test_missing_professional_gets_placeholder_summary(db) -> None:
    summaries = build_professional_summaries(db, {77})

    assert summaries[77].first_name == 'Unknown'
    assert summaries[77].specialties == []
    assert summaries[77].session_rate is None
