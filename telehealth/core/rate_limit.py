"""Allow/deny decision for new bookings.

Callers consult this before invoking the booking guard; the guard itself
never looks at quotas.
"""

import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from telehealth.core import config
from telehealth.core.errors import DependencyError
from telehealth.core.timeutils import utcnow
from telehealth.models.appointment import Appointment

logger = logging.getLogger(__name__)


def daily_booking_allowed(
    db: Session,
    patient_id: int,
    now: datetime | None = None,
    limit: int | None = None,
) -> bool:
    now = now or utcnow()
    limit = limit if limit is not None else config.MAX_DAILY_BOOKINGS
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)

    try:
        created_today = db.query(func.count(Appointment.id)).filter(
            Appointment.patient_id == patient_id,
            Appointment.created_at >= day_start,
        ).scalar() or 0
    except SQLAlchemyError as exc:
        logger.exception('Booking quota lookup failed for patient %s', patient_id)
        raise DependencyError('Rate limiter unavailable.') from exc

    if created_today >= limit:
        logger.info('Patient %s reached the daily booking limit (%s)', patient_id, limit)
        return False
    return True
