"""Availability model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, Time
from clinicbook.database import Base


class AvailabilityRule(Base):
    """A recurring weekly window in which a doctor accepts bookings.

    ``day_of_week`` counts from Sunday (0) to Saturday (6).
    """
    __tablename__ = "availability_rules"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_availability_rule_window"),
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_availability_rule_day"),
    )

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
