"""Authoritative booking write path.

A reservation is accepted only if the requested window is still free at
commit time. Three layers keep two racing requests from both winning:

* an in-process lock per professional, so one worker process never runs two
  reservations for the same professional at once;
* ``SELECT ... FOR UPDATE`` on the professional's profile row, which
  serializes writers across processes on PostgreSQL;
* a partial unique index on ``(professional_id, start_time)`` over pending and
  confirmed appointments, so the store itself rejects a duplicate start.

Any availability shown to the client beforehand is only a hint.
"""

import logging
from datetime import datetime, timedelta
from threading import Lock
from weakref import WeakValueDictionary

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from telehealth.core.errors import ConflictError, DependencyError, SchedulingError, ValidationError
from telehealth.core.timeutils import day_of_week, to_naive_utc, utcnow
from telehealth.models.appointment import ACTIVE_START_INDEX_NAME, Appointment, AppointmentStatus, Modality
from telehealth.scheduling.availability import get_active_blocks_for_day
from telehealth.scheduling.booking_index import find_overlapping_appointment
from telehealth.scheduling.professionals import get_bookable_professional
from telehealth.scheduling.slots import SLOT_INCREMENT_MINUTES, SUPPORTED_DURATIONS, block_containing

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 600
ALREADY_BOOKED_MESSAGE = 'This time is already booked.'
OUTSIDE_SCHEDULE_MESSAGE = 'Professional is not available at that time.'
SQLITE_ACTIVE_START_VIOLATION = 'UNIQUE constraint failed: appointments.professional_id, appointments.start_time'


class ProfessionalLock:
    """Mutex for one professional's booking writes; weakly registered."""

    def __init__(self):
        self._lock = Lock()

    def __enter__(self):
        self._lock.acquire()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self._lock.release()


_registry_lock = Lock()
# Entries vanish once no caller holds the lock.
_professional_locks: 'WeakValueDictionary[int, ProfessionalLock]' = WeakValueDictionary()


def professional_lock(professional_id: int) -> ProfessionalLock:
    with _registry_lock:
        lock = _professional_locks.get(professional_id)
        if lock is None:
            lock = ProfessionalLock()
            _professional_locks[professional_id] = lock
        return lock


def is_active_start_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    # SQLite names the indexed columns rather than the index.
    return ACTIVE_START_INDEX_NAME in message or SQLITE_ACTIVE_START_VIOLATION in message


def normalize_modality(modality: str) -> str:
    normalized = str(modality.value if isinstance(modality, Modality) else modality).strip().lower()
    if normalized not in {item.value for item in Modality}:
        raise ValidationError('Modality must be virtual or in_person.')
    return normalized


def normalize_reason(reason: str | None) -> str | None:
    if reason is None:
        return None

    normalized = reason.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_REASON_LENGTH:
        raise ValidationError(f'Reason must be {MAX_REASON_LENGTH} characters or fewer.')

    return normalized


def validate_booking_window(start_time: datetime, duration_minutes: int, now: datetime) -> tuple[datetime, datetime]:
    if duration_minutes not in SUPPORTED_DURATIONS:
        raise ValidationError('Duration must be 30 or 60 minutes.')

    start = to_naive_utc(start_time)
    if start.second or start.microsecond or start.minute % SLOT_INCREMENT_MINUTES != 0:
        raise ValidationError(f'Appointments must start on {SLOT_INCREMENT_MINUTES}-minute boundaries.')

    if start <= now:
        raise ValidationError('Appointments must be scheduled in the future.')

    return start, start + timedelta(minutes=duration_minutes)


def reserve(
    db: Session,
    patient_id: int,
    professional_id: int,
    start_time: datetime,
    duration_minutes: int,
    modality: str,
    reason: str | None = None,
    now: datetime | None = None,
) -> Appointment:
    """Create a pending appointment or raise ``ConflictError``.

    Of any number of concurrent calls for overlapping windows of the same
    professional, exactly one succeeds. Nothing is written on failure.
    """
    start, end = validate_booking_window(start_time, duration_minutes, now or utcnow())
    normalized_modality = normalize_modality(modality)
    normalized_reason = normalize_reason(reason)

    with professional_lock(professional_id):
        try:
            get_bookable_professional(db, professional_id, lock=True)

            day_blocks = get_active_blocks_for_day(db, professional_id, day_of_week(start.date()))
            if block_containing(day_blocks, start.time(), duration_minutes) is None:
                raise ConflictError(OUTSIDE_SCHEDULE_MESSAGE)

            existing = find_overlapping_appointment(db, professional_id, start, end)
            if existing is not None:
                raise ConflictError(ALREADY_BOOKED_MESSAGE, existing.start_time, existing.end_time)

            appointment = Appointment(
                patient_id=patient_id,
                professional_id=professional_id,
                start_time=start,
                end_time=end,
                duration_minutes=duration_minutes,
                modality=normalized_modality,
                status=AppointmentStatus.PENDING.value,
                reason=normalized_reason,
            )
            db.add(appointment)
            db.commit()
            db.refresh(appointment)
        except SchedulingError as exc:
            db.rollback()
            if isinstance(exc, ConflictError):
                logger.info('Booking conflict for professional %s at %s: %s', professional_id, start, exc.message)
            raise
        except IntegrityError as exc:
            db.rollback()
            if not is_active_start_violation(exc):
                logger.exception('Store rejected booking for professional %s at %s', professional_id, start)
                raise DependencyError('Scheduling store rejected the booking.') from exc
            logger.info('Store rejected overlapping booking for professional %s at %s', professional_id, start)
            raise ConflictError(ALREADY_BOOKED_MESSAGE, start, end) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception('Booking failed for professional %s at %s', professional_id, start)
            raise DependencyError('Scheduling store unavailable.') from exc

    logger.info(
        'Reserved appointment %s for professional %s at %s (%s min)',
        appointment.id,
        professional_id,
        start,
        duration_minutes,
    )
    return appointment
