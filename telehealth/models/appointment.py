"""Appointment model definitions."""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, text
from telehealth.core.timeutils import utcnow
from telehealth.database import Base


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class Modality(str, Enum):
    VIRTUAL = "virtual"
    IN_PERSON = "in_person"


# States that claim professional time.
OCCUPYING_STATUSES = (AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value)

ACTIVE_START_INDEX_NAME = "uq_appointments_professional_active_start"


class Appointment(Base):
    """Represents a scheduled appointment."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_professional_start", "professional_id", "start_time"),
        Index("idx_appointments_patient_start", "patient_id", "start_time"),
        Index(
            ACTIVE_START_INDEX_NAME,
            "professional_id",
            "start_time",
            unique=True,
            sqlite_where=text("status IN ('pending', 'confirmed')"),
            postgresql_where=text("status IN ('pending', 'confirmed')"),
        ),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    professional_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    modality = Column(String, nullable=False)
    status = Column(String, nullable=False, default=AppointmentStatus.PENDING.value)
    reason = Column(String)
    professional_notes = Column(String)
    cancellation_reason = Column(String)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
