from datetime import date, datetime, timedelta
from typing import NamedTuple

from sqlalchemy.orm import Session

from telehealth.models.appointment import OCCUPYING_STATUSES, Appointment


class OccupiedInterval(NamedTuple):
    start_time: datetime
    duration_minutes: int

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration_minutes)


def day_bounds(target_date: date) -> tuple[datetime, datetime]:
    day_start = datetime.combine(target_date, datetime.min.time())
    return day_start, day_start + timedelta(days=1)


def get_occupied_intervals(
    db: Session,
    professional_id: int,
    range_start: datetime,
    range_end: datetime,
) -> list[OccupiedInterval]:
    """Pending and confirmed appointments of a professional touching the range.

    An appointment that started before ``range_start`` but runs into it is
    included, since it still claims time inside the range.
    """
    rows = db.query(Appointment.start_time, Appointment.duration_minutes).filter(
        Appointment.professional_id == professional_id,
        Appointment.status.in_(OCCUPYING_STATUSES),
        Appointment.start_time < range_end,
        Appointment.end_time > range_start,
    ).order_by(Appointment.start_time.asc()).all()

    return [OccupiedInterval(start_time, duration_minutes) for start_time, duration_minutes in rows]


def find_overlapping_appointment(
    db: Session,
    professional_id: int,
    start_time: datetime,
    end_time: datetime,
) -> Appointment | None:
    return db.query(Appointment).filter(
        Appointment.professional_id == professional_id,
        Appointment.status.in_(OCCUPYING_STATUSES),
        Appointment.start_time < end_time,
        Appointment.end_time > start_time,
    ).order_by(Appointment.start_time.asc()).first()
