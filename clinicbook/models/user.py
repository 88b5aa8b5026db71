"""User model definitions."""

import enum

from sqlalchemy import Column, ForeignKey, Integer, String
from clinicbook.database import Base


class Role(str, enum.Enum):
    PATIENT = 'patient'
    DOCTOR = 'doctor'
    ASSISTANT = 'assistant'
    ADMIN = 'admin'


class User(Base):
    """Represents an application user (patient, doctor, assistant or admin)."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String)
    role = Column(String, nullable=False, default=Role.PATIENT.value)
    # Legacy direct assistant -> doctor assignment; see AssignmentResolver.
    assigned_doctor_id = Column(Integer, ForeignKey("users.id"), nullable=True)
