"""GroupSession models - Pools of students sharing one subject/date slot"""
from sqlalchemy import (
    Column, String, Text, Integer, Date, Time, DateTime, ForeignKey, Uuid,
    CheckConstraint, UniqueConstraint, Index, event,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from tutorbook.database import Base

GROUP_STATUSES = ("forming", "ready", "assigned", "approved", "completed", "cancelled", "full")
# Statuses in which a group accepts new students through the matcher
OPEN_GROUP_STATUSES = ("forming", "ready")
# Statuses driven by membership count; the rest are set by admins
MEMBERSHIP_STATUSES = ("forming", "ready", "full")

DEFAULT_MIN_STUDENTS = 3
DEFAULT_MAX_STUDENTS = 40


def slot_key(service_id, session_type: str, preferred_date, preferred_time=None) -> str:
    """Key identifying a (service, session type, date, time) slot."""
    time_part = preferred_time.strftime("%H:%M") if preferred_time is not None else "-"
    return f"{service_id}:{session_type}:{preferred_date.isoformat()}:{time_part}"


class GroupSession(Base):
    """
    Group tutoring session awaiting quorum and tutor assignment.

    open_slot carries the slot key while the group is forming or ready and is
    NULL otherwise; its unique constraint allows at most one open group per
    slot.
    """

    __tablename__ = "group_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    service_id = Column(
        Uuid,
        ForeignKey("tutoring_services.id", ondelete="RESTRICT"),
        nullable=False,
    )
    subject = Column(String(200), nullable=False)
    session_type = Column(String(20), nullable=False, default="online")
    preferred_date = Column(Date, nullable=False)
    preferred_time = Column(Time, nullable=True)
    status = Column(String(20), nullable=False, default="forming")
    min_students = Column(Integer, nullable=False, default=DEFAULT_MIN_STUDENTS)
    max_students = Column(Integer, nullable=False, default=DEFAULT_MAX_STUDENTS)
    current_count = Column(Integer, nullable=False, default=0)
    open_slot = Column(String(255), nullable=True)
    meeting_link = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    participants = relationship(
        "GroupSessionParticipant",
        back_populates="group_session",
        order_by="GroupSessionParticipant.joined_at",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )
    tutors = relationship(
        "GroupSessionTutor",
        back_populates="group_session",
        order_by="GroupSessionTutor.assignment_order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('forming', 'ready', 'assigned', 'approved', 'completed', 'cancelled', 'full')",
            name="ck_group_sessions_status",
        ),
        CheckConstraint(
            "current_count >= 0 AND current_count <= max_students",
            name="ck_group_sessions_count",
        ),
        CheckConstraint(
            "min_students >= 1 AND min_students <= max_students",
            name="ck_group_sessions_quorum",
        ),
        UniqueConstraint("open_slot", name="uq_group_sessions_open_slot"),
        Index("idx_group_sessions_slot", "service_id", "session_type", "preferred_date"),
        Index("idx_group_sessions_status", "status"),
    )
    __mapper_args__ = {"eager_defaults": True}

    @property
    def tutor_id(self):
        """Primary tutor: the first tutor in assignment order, if any."""
        return self.tutors[0].tutor_id if self.tutors else None

    def slot_key(self) -> str:
        return slot_key(self.service_id, self.session_type, self.preferred_date, self.preferred_time)

    def __repr__(self):
        return (
            f"<GroupSession(id={self.id}, subject={self.subject}, date={self.preferred_date}, "
            f"status={self.status}, count={self.current_count})>"
        )


@event.listens_for(GroupSession, "before_insert")
@event.listens_for(GroupSession, "before_update")
def sync_open_slot(mapper, connection, target):
    """Keep open_slot in step with status on every flush."""
    target.open_slot = target.slot_key() if target.status in OPEN_GROUP_STATUSES else None


class GroupSessionParticipant(Base):
    """Membership of one student in one group session"""

    __tablename__ = "group_session_participants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    group_session_id = Column(
        Uuid,
        ForeignKey("group_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id = Column(Uuid, nullable=False)
    notes = Column(Text, nullable=True)
    joined_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    group_session = relationship("GroupSession", back_populates="participants")

    __table_args__ = (
        UniqueConstraint("group_session_id", "student_id", name="uq_group_session_participant"),
        Index("idx_participants_student", "student_id"),
    )
    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self):
        return f"<GroupSessionParticipant(group={self.group_session_id}, student={self.student_id})>"


class GroupSessionTutor(Base):
    """Tutor bound to a group session at a 1-based assignment order"""

    __tablename__ = "group_session_tutors"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    group_session_id = Column(
        Uuid,
        ForeignKey("group_sessions.id", ondelete="CASCADE"),
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

    group_session = relationship("GroupSession", back_populates="tutors")

    __table_args__ = (
        CheckConstraint(
            "assignment_order >= 1 AND assignment_order <= 5",
            name="ck_group_session_tutors_order",
        ),
        UniqueConstraint("group_session_id", "assignment_order", name="uq_group_session_tutor_order"),
        UniqueConstraint("group_session_id", "tutor_id", name="uq_group_session_tutor"),
        Index("idx_group_session_tutors_tutor", "tutor_id"),
    )
    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self):
        return (
            f"<GroupSessionTutor(group={self.group_session_id}, tutor={self.tutor_id}, "
            f"order={self.assignment_order})>"
        )
