from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from telehealth.auth.dependencies import require_professional
from telehealth.database import ensure_database_ready, get_db
from telehealth.models.schedule import ScheduleBlock
from telehealth.models.user import User
from telehealth.scheduling.schedule_config import ScheduleBlockInput, configure_schedule, get_schedule

router = APIRouter(tags=['schedule'])

MAX_BLOCKS_PER_SCHEDULE = 70


class ScheduleBlockRequest(BaseModel):
    day_of_week: int
    start_time: str
    end_time: str
    session_duration: int = 60
    active: bool = True

    @field_validator('start_time', 'end_time')
    @classmethod
    def strip_time(cls, value: str) -> str:
        return value.strip()


class ConfigureScheduleRequest(BaseModel):
    blocks: list[ScheduleBlockRequest]

    @field_validator('blocks')
    @classmethod
    def validate_block_count(cls, value: list[ScheduleBlockRequest]) -> list[ScheduleBlockRequest]:
        if len(value) > MAX_BLOCKS_PER_SCHEDULE:
            raise ValueError(f'A schedule may hold at most {MAX_BLOCKS_PER_SCHEDULE} blocks.')
        return value


class ScheduleBlockResponse(BaseModel):
    id: int
    day_of_week: int
    start_time: str
    end_time: str
    session_duration: int
    active: bool


def to_block_response(block: ScheduleBlock) -> ScheduleBlockResponse:
    return ScheduleBlockResponse(
        id=block.id,
        day_of_week=block.day_of_week,
        start_time=block.start_time.strftime('%H:%M'),
        end_time=block.end_time.strftime('%H:%M'),
        session_duration=block.session_duration or 60,
        active=block.active,
    )


@router.get('/me', response_model=list[ScheduleBlockResponse])
def get_my_schedule(
    include_inactive: bool = Query(default=False),
    current_user: User = Depends(require_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    blocks = get_schedule(db, current_user.id, include_inactive=include_inactive)
    return [to_block_response(block) for block in blocks]


@router.put('/me', response_model=list[ScheduleBlockResponse])
def configure_my_schedule(
    data: ConfigureScheduleRequest,
    current_user: User = Depends(require_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    blocks = configure_schedule(
        db,
        current_user.id,
        [
            ScheduleBlockInput(
                day_of_week=block.day_of_week,
                start_time=block.start_time,
                end_time=block.end_time,
                session_duration=block.session_duration,
                active=block.active,
            )
            for block in data.blocks
        ],
    )
    return [to_block_response(block) for block in blocks]
