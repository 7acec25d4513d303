from datetime import date, time

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from telehealth.auth.dependencies import get_current_user
from telehealth.core.errors import ValidationError
from telehealth.core.timeutils import day_of_week
from telehealth.database import ensure_database_ready, get_db
from telehealth.models.user import User
from telehealth.scheduling.availability import resolve_availability

router = APIRouter(tags=['availability'])


class AvailabilitySlotResponse(BaseModel):
    start_time: time
    free: bool
    max_free_duration_minutes: int

    class Config:
        from_attributes = True


class DayAvailabilityResponse(BaseModel):
    professional_id: int
    date: date
    day_of_week: int
    slots: list[AvailabilitySlotResponse]


def parse_calendar_date(value: str) -> date:
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValidationError('Invalid date format, use YYYY-MM-DD.') from exc


@router.get('/{professional_id}', response_model=DayAvailabilityResponse)
def get_day_availability(
    professional_id: int,
    date_value: str = Query(..., alias='date'),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    target_date = parse_calendar_date(date_value)

    ensure_database_ready()

    slots = resolve_availability(db, professional_id, target_date)
    return DayAvailabilityResponse(
        professional_id=professional_id,
        date=target_date,
        day_of_week=day_of_week(target_date),
        slots=[AvailabilitySlotResponse.model_validate(slot) for slot in slots],
    )
