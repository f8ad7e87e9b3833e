"""Tutor model - Tutors who can be assigned to bookings and group sessions"""
from sqlalchemy import Column, String, DateTime, JSON, Uuid, CheckConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from tutorbook.database import Base

TUTOR_STATUSES = ("pending", "approved", "rejected")


class Tutor(Base):
    """Tutor profile keyed by the identity provider's user id"""

    __tablename__ = "tutors"

    id = Column(Uuid, primary_key=True)
    name = Column(String(200), nullable=False)
    email = Column(String(320), unique=True, nullable=False)
    subjects = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default="approved")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    availability = relationship(
        "TutorAvailability",
        back_populates="tutor",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="[TutorAvailability.day_of_week, TutorAvailability.start_time]",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_tutors_status",
        ),
        Index("idx_tutors_status", "status"),
    )
    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self):
        return f"<Tutor(id={self.id}, name={self.name}, status={self.status})>"
