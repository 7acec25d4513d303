import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from telehealth.core.errors import DependencyError, ValidationError
from telehealth.core.timeutils import utcnow
from telehealth.models.appointment import OCCUPYING_STATUSES, Appointment, AppointmentStatus
from telehealth.models.user import ROLE_PROFESSIONAL, User
from telehealth.scheduling.professionals import get_profiles_by_user_ids

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
UNKNOWN_PROFESSIONAL_NAME = 'Unknown'


class AppointmentFilter(str, Enum):
    ALL = 'all'
    UPCOMING = 'upcoming'
    PAST = 'past'
    CANCELLED = 'cancelled'


@dataclass
class ProfessionalSummary:
    id: int
    first_name: str
    last_name: str
    email: str
    specialties: list[str] = field(default_factory=list)
    session_rate: float | None = None


@dataclass
class AppointmentListItem:
    appointment: Appointment
    professional: ProfessionalSummary


@dataclass
class AppointmentPage:
    items: list[AppointmentListItem]
    total: int
    page: int
    page_size: int
    total_pages: int
    counts: dict[str, int]


def filter_criteria(appointment_filter: AppointmentFilter, now: datetime) -> list:
    if appointment_filter is AppointmentFilter.UPCOMING:
        return [Appointment.start_time >= now, Appointment.status.in_(OCCUPYING_STATUSES)]
    if appointment_filter is AppointmentFilter.PAST:
        return [Appointment.start_time < now, Appointment.status == AppointmentStatus.COMPLETED.value]
    if appointment_filter is AppointmentFilter.CANCELLED:
        return [Appointment.status == AppointmentStatus.CANCELLED.value]
    return []


def owner_criterion(caller_id: int, caller_role: str):
    if caller_role == ROLE_PROFESSIONAL:
        return Appointment.professional_id == caller_id
    return Appointment.patient_id == caller_id


def _count(db: Session, criteria: list) -> int:
    return db.query(func.count(Appointment.id)).filter(*criteria).scalar() or 0


def build_professional_summaries(db: Session, professional_ids: set[int]) -> dict[int, ProfessionalSummary]:
    if not professional_ids:
        return {}

    users = {user.id: user for user in db.query(User).filter(User.id.in_(professional_ids)).all()}
    profiles = get_profiles_by_user_ids(db, professional_ids)

    summaries: dict[int, ProfessionalSummary] = {}
    for professional_id in professional_ids:
        user = users.get(professional_id)
        profile = profiles.get(professional_id)
        if user is None:
            summaries[professional_id] = ProfessionalSummary(
                id=professional_id,
                first_name=UNKNOWN_PROFESSIONAL_NAME,
                last_name='',
                email='',
            )
            continue

        summaries[professional_id] = ProfessionalSummary(
            id=user.id,
            first_name=user.first_name or '',
            last_name=user.last_name or '',
            email=user.email or '',
            specialties=profile.specialty_list if profile else [],
            session_rate=float(profile.session_rate) if profile and profile.session_rate is not None else None,
        )

    return summaries


def list_appointments(
    db: Session,
    caller_id: int,
    caller_role: str,
    appointment_filter: AppointmentFilter = AppointmentFilter.ALL,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    now: datetime | None = None,
) -> AppointmentPage:
    """One page of the caller's appointments, newest first, plus bucket counts."""
    if page < 1:
        raise ValidationError('Page must be 1 or greater.')
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise ValidationError(f'Page size must be between 1 and {MAX_PAGE_SIZE}.')

    now = now or utcnow()
    owner = owner_criterion(caller_id, caller_role)
    criteria = [owner, *filter_criteria(appointment_filter, now)]

    try:
        total = _count(db, criteria)
        appointments = db.query(Appointment).filter(*criteria).order_by(
            Appointment.start_time.desc(),
            Appointment.id.desc(),
        ).offset((page - 1) * page_size).limit(page_size).all()

        summaries = build_professional_summaries(db, {appointment.professional_id for appointment in appointments})

        counts = {
            AppointmentFilter.UPCOMING.value: _count(db, [owner, *filter_criteria(AppointmentFilter.UPCOMING, now)]),
            AppointmentFilter.PAST.value: _count(db, [owner, *filter_criteria(AppointmentFilter.PAST, now)]),
            AppointmentFilter.CANCELLED.value: _count(db, [owner, *filter_criteria(AppointmentFilter.CANCELLED, now)]),
            'total': _count(db, [owner]),
        }
    except SQLAlchemyError as exc:
        logger.exception('Listing appointments failed for user %s', caller_id)
        raise DependencyError('Scheduling store unavailable.') from exc

    return AppointmentPage(
        items=[
            AppointmentListItem(appointment=appointment, professional=summaries[appointment.professional_id])
            for appointment in appointments
        ],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0,
        counts=counts,
    )
