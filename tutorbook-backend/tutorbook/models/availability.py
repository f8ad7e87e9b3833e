"""TutorAvailability model - Weekly recurring availability windows"""
from sqlalchemy import Column, Integer, Boolean, Time, DateTime, ForeignKey, Uuid, CheckConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from tutorbook.database import Base


class TutorAvailability(Base):
    """
    One weekly window in which a tutor can teach.

    day_of_week follows the 0=Sunday .. 6=Saturday convention used by the
    booking UI.
    """

    __tablename__ = "tutor_availability"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tutor_id = Column(
        Uuid,
        ForeignKey("tutors.id", ondelete="CASCADE"),
        nullable=False,
    )
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    tutor = relationship("Tutor", back_populates="availability")

    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_availability_day"),
        CheckConstraint("start_time < end_time", name="ck_availability_window"),
        Index("idx_availability_tutor_day", "tutor_id", "day_of_week"),
    )
    __mapper_args__ = {"eager_defaults": True}

    def covers(self, requested_time) -> bool:
        """True if the window is active and start <= requested_time < end."""
        return bool(self.is_active) and self.start_time <= requested_time < self.end_time

    def __repr__(self):
        return (
            f"<TutorAvailability(tutor={self.tutor_id}, day={self.day_of_week}, "
            f"{self.start_time}-{self.end_time})>"
        )
