"""Clinic and assistant assignment model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from clinicbook.database import Base


class Clinic(Base):
    """A practice location owned by a single doctor."""
    __tablename__ = "clinics"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)


class ClinicAssistant(Base):
    """Clinic-level assistant assignment."""
    __tablename__ = "clinic_assistants"
    __table_args__ = (UniqueConstraint("clinic_id", "assistant_id", name="uq_clinic_assistant"),)

    id = Column(Integer, primary_key=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False)
    assistant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)


class DoctorAssistant(Base):
    """Join-table assistant <-> doctor assignment."""
    __tablename__ = "doctor_assistants"
    __table_args__ = (UniqueConstraint("doctor_id", "assistant_id", name="uq_doctor_assistant"),)

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    assistant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
