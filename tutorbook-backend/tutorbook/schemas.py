"""Pydantic models shared by the booking services and the API layer"""
from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["admin", "tutor", "student"]


class CurrentUser(BaseModel):
    """Identity of the caller, resolved by the identity provider"""
    id: UUID
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


# Requests


class AdditionalSubject(BaseModel):
    """Extra subject requested alongside the primary service"""
    service_id: UUID
    duration_minutes: Optional[int] = Field(None, gt=0)


class BookingSubmission(BaseModel):
    """
    A student's session request.

    Required fields depend on class_type and are checked by booking intake so
    the caller gets a reason per field.
    """
    service_id: UUID
    class_type: Literal["one-on-one", "group"] = "one-on-one"
    delivery_mode: Literal["online", "in_person"] = "online"
    preferred_date: Optional[date] = None
    preferred_time: Optional[time] = None
    notes: Optional[str] = Field(None, max_length=2000)
    curriculum: Optional[str] = Field(None, max_length=100)
    duration_minutes: Optional[int] = None
    can_travel: bool = Field(False, description="Student confirms they can travel to in-person sessions")
    additional_subjects: List[AdditionalSubject] = Field(default_factory=list)


class JoinGroupRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)


class TutorAssignmentRequest(BaseModel):
    """Tutors in priority order; the first becomes the primary tutor"""
    tutor_ids: List[UUID]


class MeetingLinkUpdate(BaseModel):
    meeting_link: str = Field(..., min_length=1, max_length=500)


class AvailabilitySlotCreate(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday .. 6=Saturday")
    start_time: time
    end_time: time


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    online_available: bool = True
    in_person_available: bool = False
    hourly_rate: Optional[Decimal] = Field(None, ge=0)


class TutorCreate(BaseModel):
    id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320)
    subjects: List[str] = Field(default_factory=list)
    status: Literal["pending", "approved", "rejected"] = "approved"


# Responses


class TutorAssignmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tutor_id: UUID
    assignment_order: int
    assigned_by: UUID
    assigned_at: Optional[datetime] = None


class BookingSubjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    service_id: UUID
    subject_order: int
    duration_minutes: Optional[int] = None


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    service_id: UUID
    subject: str
    session_type: str
    delivery_mode: str
    class_type: str
    preferred_date: date
    preferred_time: Optional[time] = None
    notes: Optional[str] = None
    curriculum: Optional[str] = None
    duration_minutes: Optional[int] = None
    status: str
    group_session_id: Optional[UUID] = None
    tutor_id: Optional[UUID] = None
    tutors: List[TutorAssignmentOut] = Field(default_factory=list)
    subjects: List[BookingSubjectOut] = Field(default_factory=list)
    meeting_link: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ParticipantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    notes: Optional[str] = None
    joined_at: Optional[datetime] = None


class GroupSessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    service_id: UUID
    subject: str
    session_type: str
    preferred_date: date
    preferred_time: Optional[time] = None
    status: str
    min_students: int
    max_students: int
    current_count: int
    tutor_id: Optional[UUID] = None
    tutors: List[TutorAssignmentOut] = Field(default_factory=list)
    participants: List[ParticipantOut] = Field(default_factory=list)
    meeting_link: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AvailabilitySlotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tutor_id: UUID
    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool


class TutorAvailabilityHint(BaseModel):
    """Advisory flag shown to admins when picking tutors"""
    tutor_id: UUID
    name: str
    email: str
    is_available: bool


class ServiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    online_available: bool
    in_person_available: bool
    hourly_rate: Optional[Decimal] = None
    is_active: bool


class TutorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    subjects: List[str]
    status: str
