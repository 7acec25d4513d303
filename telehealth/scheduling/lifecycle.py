"""Appointment state machine.

    pending   -> confirmed | cancelled
    confirmed -> completed | cancelled | no_show

``completed``, ``cancelled`` and ``no_show`` are terminal.
"""

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from telehealth.core.errors import (
    DependencyError,
    InvalidTransitionError,
    NotFoundError,
    SchedulingError,
    ValidationError,
)
from telehealth.core.timeutils import utcnow
from telehealth.models.appointment import Appointment, AppointmentStatus

logger = logging.getLogger(__name__)

TransitionMap = dict[AppointmentStatus, frozenset[AppointmentStatus]]

VALID_TRANSITIONS: TransitionMap = {
    AppointmentStatus.PENDING: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in VALID_TRANSITIONS.items() if not targets)

SIDE_PATIENT = 'patient'
SIDE_PROFESSIONAL = 'professional'

# Which side of an appointment may move it into each target state.
ALLOWED_SIDES: dict[AppointmentStatus, frozenset[str]] = {
    AppointmentStatus.CONFIRMED: frozenset({SIDE_PROFESSIONAL}),
    AppointmentStatus.COMPLETED: frozenset({SIDE_PROFESSIONAL}),
    AppointmentStatus.NO_SHOW: frozenset({SIDE_PROFESSIONAL}),
    AppointmentStatus.CANCELLED: frozenset({SIDE_PATIENT, SIDE_PROFESSIONAL}),
}

MAX_NOTES_LENGTH = 5000
APPOINTMENT_NOT_FOUND_MESSAGE = 'Appointment not found.'
CONCURRENT_CHANGE_MESSAGE = 'Appointment was changed by another request; reload and try again.'


def get_valid_targets(current: AppointmentStatus) -> frozenset[AppointmentStatus]:
    return VALID_TRANSITIONS.get(current, frozenset())


def is_transition_valid(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in get_valid_targets(current)


def _normalize_text(value: str | None, field_name: str) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_NOTES_LENGTH:
        raise ValidationError(f'{field_name} must be {MAX_NOTES_LENGTH} characters or fewer.')

    return normalized


def _load_for_caller(db: Session, appointment_id: int, caller_id: int) -> tuple[Appointment, str]:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).with_for_update().first()

    # Non-participants get the same answer as a missing id.
    if appointment is None or caller_id not in (appointment.patient_id, appointment.professional_id):
        raise NotFoundError(APPOINTMENT_NOT_FOUND_MESSAGE)

    side = SIDE_PROFESSIONAL if caller_id == appointment.professional_id else SIDE_PATIENT
    return appointment, side


def _apply(db: Session, appointment_id: int, caller_id: int, plan) -> Appointment:
    """Load, check and write one appointment as a compare-and-set on its status.

    ``plan`` inspects the loaded row and returns the column values to write.
    The UPDATE only matches while the row still holds the status ``plan``
    saw, so a concurrent change makes this call fail instead of overwriting
    it. Stores that ignore ``FOR UPDATE`` (SQLite) rely on this check alone.
    """
    try:
        appointment, side = _load_for_caller(db, appointment_id, caller_id)
        observed_status = appointment.status
        values = plan(appointment, side)

        updated = db.query(Appointment).filter(
            Appointment.id == appointment.id,
            Appointment.status == observed_status,
        ).update(values, synchronize_session=False)
        if updated != 1:
            logger.info('Appointment %s changed while %s was updating it', appointment_id, side)
            raise InvalidTransitionError(CONCURRENT_CHANGE_MESSAGE)

        db.commit()
        db.refresh(appointment)
        return appointment
    except SchedulingError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Updating appointment %s failed', appointment_id)
        raise DependencyError('Scheduling store unavailable.') from exc


def transition(
    db: Session,
    appointment_id: int,
    caller_id: int,
    target: AppointmentStatus,
    notes: str | None = None,
    reason: str | None = None,
    now: datetime | None = None,
) -> Appointment:
    normalized_notes = _normalize_text(notes, 'Notes')
    normalized_reason = _normalize_text(reason, 'Cancellation reason')

    def plan(appointment: Appointment, side: str) -> dict:
        current = AppointmentStatus(appointment.status)
        if not is_transition_valid(current, target):
            raise InvalidTransitionError(
                f'Cannot move appointment from {current.value} to {target.value}.'
            )
        if side not in ALLOWED_SIDES[target]:
            raise InvalidTransitionError(
                f'Only the professional can move an appointment to {target.value}.'
            )

        values = {Appointment.status: target.value, Appointment.updated_at: now or utcnow()}
        if normalized_notes is not None:
            values[Appointment.professional_notes] = normalized_notes
        if target is AppointmentStatus.CANCELLED:
            values[Appointment.cancellation_reason] = normalized_reason
        return values

    appointment = _apply(db, appointment_id, caller_id, plan)
    logger.info('Appointment %s moved to %s by user %s', appointment.id, target.value, caller_id)
    return appointment


def confirm(db: Session, appointment_id: int, caller_id: int, now: datetime | None = None) -> Appointment:
    return transition(db, appointment_id, caller_id, AppointmentStatus.CONFIRMED, now=now)


def complete(
    db: Session,
    appointment_id: int,
    caller_id: int,
    notes: str | None = None,
    now: datetime | None = None,
) -> Appointment:
    return transition(db, appointment_id, caller_id, AppointmentStatus.COMPLETED, notes=notes, now=now)


def cancel(
    db: Session,
    appointment_id: int,
    caller_id: int,
    reason: str | None = None,
    now: datetime | None = None,
) -> Appointment:
    return transition(db, appointment_id, caller_id, AppointmentStatus.CANCELLED, reason=reason, now=now)


def mark_no_show(db: Session, appointment_id: int, caller_id: int, now: datetime | None = None) -> Appointment:
    return transition(db, appointment_id, caller_id, AppointmentStatus.NO_SHOW, now=now)


def update_professional_notes(
    db: Session,
    appointment_id: int,
    caller_id: int,
    notes: str | None,
    now: datetime | None = None,
) -> Appointment:
    """Replace the professional's notes; a blank value clears them."""
    normalized_notes = _normalize_text(notes, 'Notes')

    def plan(appointment: Appointment, side: str) -> dict:
        if side != SIDE_PROFESSIONAL:
            raise InvalidTransitionError('Only the professional can edit session notes.')
        if appointment.status == AppointmentStatus.CANCELLED.value:
            raise InvalidTransitionError('Notes cannot be edited on a cancelled appointment.')

        return {Appointment.professional_notes: normalized_notes, Appointment.updated_at: now or utcnow()}

    return _apply(db, appointment_id, caller_id, plan)
