"""Turn recurring weekly schedule blocks into concrete slot start times.

Everything here is pure: no session, no clock. Blocks may be ORM rows or any
object exposing ``day_of_week``, ``start_time``, ``end_time`` and ``active``.
"""

from datetime import date, datetime, time
from typing import Iterable

from telehealth.core.timeutils import day_of_week

SLOT_INCREMENT_MINUTES = 30
SUPPORTED_DURATIONS = (30, 60)


def minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def time_from_minutes(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def is_grid_aligned(value: time) -> bool:
    return value.second == 0 and value.microsecond == 0 and value.minute % SLOT_INCREMENT_MINUTES == 0


def blocks_for_day(blocks: Iterable, weekday: int) -> list:
    return [block for block in blocks if block.active and block.day_of_week == weekday]


def iterate_block_slots(start_time: time, end_time: time) -> list[time]:
    start_minutes = minutes_of_day(start_time)
    end_minutes = minutes_of_day(end_time)

    slots: list[time] = []
    current = start_minutes
    while current + SLOT_INCREMENT_MINUTES <= end_minutes:
        slots.append(time_from_minutes(current))
        current += SLOT_INCREMENT_MINUTES

    return slots


def generate_slot_starts(blocks: Iterable) -> list[time]:
    """Ordered, deduplicated slot starts covering every active block.

    Overlapping or duplicated blocks contribute the same start once.
    """
    starts: set[time] = set()
    for block in blocks:
        if not block.active:
            continue
        starts.update(iterate_block_slots(block.start_time, block.end_time))

    return sorted(starts)


def generate_slots_for_date(blocks: Iterable, target_date: date) -> list[datetime]:
    day_blocks = blocks_for_day(blocks, day_of_week(target_date))
    return [datetime.combine(target_date, slot) for slot in generate_slot_starts(day_blocks)]


def block_containing(blocks: Iterable, start: time, duration_minutes: int):
    """First active block holding ``[start, start + duration)`` entirely, or None."""
    window_start = minutes_of_day(start)
    window_end = window_start + duration_minutes

    for block in blocks:
        if not block.active:
            continue
        if minutes_of_day(block.start_time) <= window_start and window_end <= minutes_of_day(block.end_time):
            return block

    return None
