import logging
import re
from dataclasses import dataclass
from datetime import time

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from telehealth.core.errors import DependencyError, ValidationError
from telehealth.models.schedule import ScheduleBlock
from telehealth.scheduling.slots import SLOT_INCREMENT_MINUTES, SUPPORTED_DURATIONS, is_grid_aligned, minutes_of_day

logger = logging.getLogger(__name__)

TIME_OF_DAY_PATTERN = re.compile(r'^([01][0-9]|2[0-3]):([0-5][0-9])$')
# Block times are stored as time-of-day values, so no block ends at midnight.
END_OF_DAY = '24:00'
LATEST_BLOCK_END = time(23, 30)


@dataclass
class ScheduleBlockInput:
    day_of_week: int
    start_time: str | time
    end_time: str | time
    session_duration: int = 60
    active: bool = True


def parse_time_of_day(value: str | time) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)

    match = TIME_OF_DAY_PATTERN.match(value.strip())
    if match is None:
        raise ValueError(value)
    return time(int(match.group(1)), int(match.group(2)))


def validate_blocks(blocks: list[ScheduleBlockInput]) -> list[tuple[int, time, time, int, bool]]:
    normalized: list[tuple[int, time, time, int, bool]] = []

    for position, block in enumerate(blocks, start=1):
        if block.day_of_week < 0 or block.day_of_week > 6:
            raise ValidationError(f'Block {position}: day_of_week must be between 0 (Sunday) and 6 (Saturday).')

        if isinstance(block.end_time, str) and block.end_time.strip() == END_OF_DAY:
            raise ValidationError(
                f'Block {position}: blocks must end by {LATEST_BLOCK_END:%H:%M}; {END_OF_DAY} is not supported.'
            )

        try:
            start_time = parse_time_of_day(block.start_time)
            end_time = parse_time_of_day(block.end_time)
        except ValueError as exc:
            raise ValidationError(f'Block {position}: invalid time format, use HH:MM (e.g. 09:00).') from exc

        if end_time <= start_time:
            raise ValidationError(f'Block {position}: end_time must be after start_time.')

        if minutes_of_day(end_time) - minutes_of_day(start_time) < SLOT_INCREMENT_MINUTES:
            raise ValidationError(f'Block {position}: blocks must last at least {SLOT_INCREMENT_MINUTES} minutes.')

        if not is_grid_aligned(start_time) or not is_grid_aligned(end_time):
            raise ValidationError(
                f'Block {position}: times must fall on {SLOT_INCREMENT_MINUTES}-minute boundaries.'
            )

        if block.session_duration not in SUPPORTED_DURATIONS:
            raise ValidationError(f'Block {position}: session_duration must be 30 or 60 minutes.')

        normalized.append((block.day_of_week, start_time, end_time, block.session_duration, block.active))

    for index, first in enumerate(normalized):
        for second in normalized[index + 1:]:
            if first[0] == second[0] and first[1] < second[2] and second[1] < first[2]:
                raise ValidationError(
                    'Overlapping blocks on the same day: '
                    f'{first[1]:%H:%M}-{first[2]:%H:%M} and {second[1]:%H:%M}-{second[2]:%H:%M}.'
                )

    return normalized


def get_schedule(db: Session, professional_id: int, include_inactive: bool = False) -> list[ScheduleBlock]:
    try:
        query = db.query(ScheduleBlock).filter(ScheduleBlock.professional_id == professional_id)
        if not include_inactive:
            query = query.filter(ScheduleBlock.active.is_(True))
        return query.order_by(
            ScheduleBlock.day_of_week.asc(),
            ScheduleBlock.start_time.asc(),
            ScheduleBlock.id.asc(),
        ).all()
    except SQLAlchemyError as exc:
        logger.exception('Reading schedule failed for professional %s', professional_id)
        raise DependencyError('Scheduling store unavailable.') from exc


def configure_schedule(db: Session, professional_id: int, blocks: list[ScheduleBlockInput]) -> list[ScheduleBlock]:
    """Replace the professional's active weekly schedule.

    Previous blocks are deactivated, never deleted. The swap is one
    transaction, so readers see either the old schedule or the new one.
    """
    normalized = validate_blocks(blocks)

    try:
        deactivated = db.query(ScheduleBlock).filter(
            ScheduleBlock.professional_id == professional_id,
            ScheduleBlock.active.is_(True),
        ).update({ScheduleBlock.active: False}, synchronize_session=False)

        for day, start_time, end_time, session_duration, active in normalized:
            db.add(
                ScheduleBlock(
                    professional_id=professional_id,
                    day_of_week=day,
                    start_time=start_time,
                    end_time=end_time,
                    session_duration=session_duration,
                    active=active,
                )
            )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Configuring schedule failed for professional %s', professional_id)
        raise DependencyError('Scheduling store unavailable.') from exc

    logger.info(
        'Professional %s replaced %s schedule blocks with %s',
        professional_id,
        deactivated,
        len(normalized),
    )
    return get_schedule(db, professional_id)
