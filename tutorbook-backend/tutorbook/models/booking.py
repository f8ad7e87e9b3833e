"""Booking models - Student booking requests with ordered subjects and tutors"""
from sqlalchemy import (
    Column, String, Text, Integer, Date, Time, DateTime, ForeignKey, Uuid,
    CheckConstraint, UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from tutorbook.database import Base

BOOKING_STATUSES = ("pending", "approved", "assigned", "completed", "cancelled", "rejected")
TERMINAL_BOOKING_STATUSES = ("completed", "cancelled", "rejected")
CLASS_TYPES = ("one-on-one", "group")
DELIVERY_MODES = ("online", "in_person")
SESSION_TYPES = ("online", "face-to-face")


def session_type_for(delivery_mode: str) -> str:
    """Map a delivery mode onto the session type stored with bookings and groups."""
    return "online" if delivery_mode == "online" else "face-to-face"


class Booking(Base):
    """
    One student's request for tutoring.

    A group-class booking always references exactly one group session and a
    one-on-one booking never does. The primary tutor is not stored: it is the
    tutor with assignment_order 1.
    """

    __tablename__ = "bookings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, nullable=False)
    service_id = Column(
        Uuid,
        ForeignKey("tutoring_services.id", ondelete="RESTRICT"),
        nullable=False,
    )
    subject = Column(String(200), nullable=False)
    session_type = Column(String(20), nullable=False)
    delivery_mode = Column(String(20), nullable=False)
    class_type = Column(String(20), nullable=False)
    preferred_date = Column(Date, nullable=False)
    preferred_time = Column(Time, nullable=True)
    notes = Column(Text, nullable=True)
    curriculum = Column(String(100), nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    group_session_id = Column(
        Uuid,
        ForeignKey("group_sessions.id", ondelete="CASCADE"),
        nullable=True,
    )
    meeting_link = Column(String(500), nullable=True)
    tutor_assigned_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    tutors = relationship(
        "BookingTutor",
        back_populates="booking",
        order_by="BookingTutor.assignment_order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )
    subjects = relationship(
        "BookingSubject",
        back_populates="booking",
        order_by="BookingSubject.subject_order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'assigned', 'completed', 'cancelled', 'rejected')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "(class_type = 'group' AND group_session_id IS NOT NULL) OR "
            "(class_type = 'one-on-one' AND group_session_id IS NULL)",
            name="ck_bookings_group_link",
        ),
        Index("idx_bookings_student", "student_id"),
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_group_session", "group_session_id"),
    )
    __mapper_args__ = {"eager_defaults": True}

    @property
    def tutor_id(self):
        """Primary tutor: the first tutor in assignment order, if any."""
        return self.tutors[0].tutor_id if self.tutors else None

    def __repr__(self):
        return f"<Booking(id={self.id}, student={self.student_id}, status={self.status})>"


class BookingSubject(Base):
    """Ordered subject of a one-on-one booking; the booked service is order 1"""

    __tablename__ = "booking_subjects"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id = Column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
    )
    service_id = Column(
        Uuid,
        ForeignKey("tutoring_services.id", ondelete="RESTRICT"),
        nullable=False,
    )
    subject_order = Column(Integer, nullable=False)
    duration_minutes = Column(Integer, nullable=True)

    booking = relationship("Booking", back_populates="subjects")

    __table_args__ = (
        UniqueConstraint("booking_id", "subject_order", name="uq_booking_subject_order"),
    )


class BookingTutor(Base):
    """Tutor bound to a booking at a 1-based assignment order"""

    __tablename__ = "booking_tutors"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id = Column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
    )
    tutor_id = Column(
        Uuid,
        ForeignKey("tutors.id", ondelete="CASCADE"),
        nullable=False,
    )
    assignment_order = Column(Integer, nullable=False)
    assigned_by = Column(Uuid, nullable=False)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    booking = relationship("Booking", back_populates="tutors")

    __table_args__ = (
        CheckConstraint("assignment_order >= 1 AND assignment_order <= 5", name="ck_booking_tutors_order"),
        UniqueConstraint("booking_id", "assignment_order", name="uq_booking_tutor_order"),
        UniqueConstraint("booking_id", "tutor_id", name="uq_booking_tutor"),
        Index("idx_booking_tutors_tutor", "tutor_id"),
    )
    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self):
        return f"<BookingTutor(booking={self.booking_id}, tutor={self.tutor_id}, order={self.assignment_order})>"
