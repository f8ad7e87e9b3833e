"""SQLAlchemy ORM Models for the booking database schema"""
from tutorbook.models.tutoring_service import TutoringService
from tutorbook.models.tutor import Tutor
from tutorbook.models.availability import TutorAvailability
from tutorbook.models.group_session import (
    GroupSession,
    GroupSessionParticipant,
    GroupSessionTutor,
)
from tutorbook.models.booking import Booking, BookingSubject, BookingTutor

__all__ = [
    "TutoringService",
    "Tutor",
    "TutorAvailability",
    "GroupSession",
    "GroupSessionParticipant",
    "GroupSessionTutor",
    "Booking",
    "BookingSubject",
    "BookingTutor",
]
