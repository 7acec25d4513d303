"""Professional profile model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from telehealth.database import Base


class ProfessionalProfile(Base):
    """Practice details of a user holding the professional role."""
    __tablename__ = "professional_profiles"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    approved = Column(Boolean, default=False, nullable=False)
    documents_verified = Column(Boolean, default=False, nullable=False)
    specialties = Column(String)
    session_rate = Column(Numeric(10, 2))

    user = relationship("User")

    @property
    def is_bookable(self) -> bool:
        return bool(self.approved and self.documents_verified)

    @property
    def specialty_list(self) -> list[str]:
        if not self.specialties:
            return []
        return [item.strip() for item in self.specialties.split(",") if item.strip()]
