from sqlalchemy import Column, Integer, String, ForeignKey, Date, DateTime, Text, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from ..core.database import Base

class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

ACTIVE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.IN_PROGRESS)

ALLOWED_TRANSITIONS = {
    AppointmentStatus.PENDING: {AppointmentStatus.IN_PROGRESS, AppointmentStatus.CANCELLED},
    AppointmentStatus.IN_PROGRESS: {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED},
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
}

def can_transition(current: AppointmentStatus, new: AppointmentStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[current]

class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_org_date_status", "organization_id", "appointment_date", "status"),
        Index("ix_appointments_user_status", "user_id", "status"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    
    # Appointment details
    expert_name = Column(String, nullable=False)
    service_name = Column(String, nullable=False)
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(String, nullable=False)
    status = Column(SQLEnum(AppointmentStatus), nullable=False, default=AppointmentStatus.PENDING)
    notes = Column(Text, nullable=True)
    
    # Queue
    queue_position = Column(Integer, nullable=False, default=0)
    estimated_wait_time = Column(Integer, nullable=False, default=0)
    
    # Tracking, microsecond resolution since queue order follows creation time
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    user = relationship("User", lazy="joined")
    organization = relationship("Organization", lazy="joined")
    
    def __repr__(self):
        return f"<Appointment(id={self.id}, organization_id={self.organization_id}, date='{self.appointment_date}', queue_position={self.queue_position})>"
