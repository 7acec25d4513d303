"""Availability resolution: schedule blocks minus occupancy for one day."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from telehealth.core.errors import DependencyError
from telehealth.core.timeutils import day_of_week
from telehealth.database import snapshot_read
from telehealth.models.schedule import ScheduleBlock
from telehealth.scheduling.booking_index import OccupiedInterval, day_bounds, get_occupied_intervals
from telehealth.scheduling.professionals import get_bookable_professional
from telehealth.scheduling.slots import SLOT_INCREMENT_MINUTES, block_containing, generate_slots_for_date

logger = logging.getLogger(__name__)

LONG_SESSION_MINUTES = 60


@dataclass(frozen=True)
class AvailabilitySlot:
    start_time: time
    free: bool
    max_free_duration_minutes: int


def intervals_overlap(
    first_start: datetime,
    first_end: datetime,
    second_start: datetime,
    second_end: datetime,
) -> bool:
    # Half-open intervals: touching endpoints do not overlap.
    return first_start < second_end and second_start < first_end


def is_window_free(start: datetime, end: datetime, occupied: Iterable[OccupiedInterval]) -> bool:
    return not any(
        intervals_overlap(start, end, interval.start_time, interval.end_time)
        for interval in occupied
    )


def build_availability(
    day_blocks: list,
    occupied: list[OccupiedInterval],
    target_date: date,
) -> list[AvailabilitySlot]:
    """Mark every generated slot of ``target_date`` free or occupied.

    Blocks for other weekdays or marked inactive contribute no slots. A
    free slot offers a 60 minute session only when the following slot is
    free too and both fit inside one schedule block.
    """
    step = timedelta(minutes=SLOT_INCREMENT_MINUTES)
    availability: list[AvailabilitySlot] = []

    for slot_start in generate_slots_for_date(day_blocks, target_date):
        slot_time = slot_start.time()
        slot_end = slot_start + step

        if not is_window_free(slot_start, slot_end, occupied):
            availability.append(AvailabilitySlot(slot_time, free=False, max_free_duration_minutes=0))
            continue

        next_slot_free = is_window_free(slot_end, slot_end + step, occupied)
        fits_long_session = block_containing(day_blocks, slot_time, LONG_SESSION_MINUTES) is not None

        max_duration = LONG_SESSION_MINUTES if next_slot_free and fits_long_session else SLOT_INCREMENT_MINUTES
        availability.append(AvailabilitySlot(slot_time, free=True, max_free_duration_minutes=max_duration))

    return availability


def get_active_blocks_for_day(db: Session, professional_id: int, weekday: int) -> list[ScheduleBlock]:
    return db.query(ScheduleBlock).filter(
        ScheduleBlock.professional_id == professional_id,
        ScheduleBlock.day_of_week == weekday,
        ScheduleBlock.active.is_(True),
    ).order_by(ScheduleBlock.start_time.asc()).all()


def resolve_availability(db: Session, professional_id: int, target_date: date) -> list[AvailabilitySlot]:
    try:
        snapshot_read(db)
        get_bookable_professional(db, professional_id)

        day_blocks = get_active_blocks_for_day(db, professional_id, day_of_week(target_date))
        if not day_blocks:
            return []

        range_start, range_end = day_bounds(target_date)
        occupied = get_occupied_intervals(db, professional_id, range_start, range_end)

        return build_availability(day_blocks, occupied, target_date)
    except SQLAlchemyError as exc:
        logger.exception('Availability lookup failed for professional %s on %s', professional_id, target_date)
        raise DependencyError('Scheduling store unavailable.') from exc
