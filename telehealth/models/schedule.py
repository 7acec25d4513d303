"""Weekly schedule block model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Index, Integer, Time
from telehealth.database import Base


class ScheduleBlock(Base):
    """One recurring weekly window in which a professional accepts bookings."""
    __tablename__ = "schedule_blocks"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_schedule_blocks_time_order"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_schedule_blocks_day_of_week"),
        Index("idx_schedule_blocks_professional_day", "professional_id", "day_of_week"),
    )

    id = Column(Integer, primary_key=True)
    professional_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    session_duration = Column(Integer, default=60, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
