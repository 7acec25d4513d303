"""User model definitions."""

from sqlalchemy import Column, Integer, String
from telehealth.database import Base

ROLE_PATIENT = "patient"
ROLE_PROFESSIONAL = "professional"
ROLE_ADMIN = "admin"


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    first_name = Column(String)
    last_name = Column(String)
    role = Column(String)  # patient/professional/admin
