"""TutoringService model - Catalog of bookable subjects/services"""
from sqlalchemy import Column, String, Text, Boolean, Numeric, DateTime, Uuid, Index
from sqlalchemy.sql import func
import uuid

from tutorbook.database import Base


class TutoringService(Base):
    """A subject or service students can book, with the delivery modes it supports"""

    __tablename__ = "tutoring_services"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    online_available = Column(Boolean, nullable=False, default=True)
    in_person_available = Column(Boolean, nullable=False, default=False)
    hourly_rate = Column(Numeric(10, 2), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_services_active", "is_active"),
    )
    __mapper_args__ = {"eager_defaults": True}

    def supports(self, delivery_mode: str) -> bool:
        if delivery_mode == "in_person":
            return bool(self.in_person_available)
        return bool(self.online_available)

    def __repr__(self):
        return f"<TutoringService(id={self.id}, name={self.name})>"
