"""Appointment schemas."""
from pydantic import BaseModel, ConfigDict
from datetime import date, datetime
from typing import Optional

from ..models.appointment import AppointmentStatus
from .auth import UserSummary
from .organization import OrganizationSummary

class AppointmentCreate(BaseModel):
    # Presence and time format are checked by the booking service so that
    # rejections follow its validation order.
    organization_id: Optional[int] = None
    expert_name: Optional[str] = None
    service_name: Optional[str] = None
    appointment_date: Optional[date] = None
    appointment_time: Optional[str] = None
    notes: Optional[str] = None

class AppointmentStatusUpdate(BaseModel):
    status: Optional[str] = None

class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: int
    user_id: int
    organization_id: int
    expert_name: str
    service_name: str
    appointment_date: date
    appointment_time: str
    status: AppointmentStatus
    queue_position: int
    estimated_wait_time: int
    notes: Optional[str] = None
    user: Optional[UserSummary] = None
    organization: Optional[OrganizationSummary] = None
    created_at: datetime
    updated_at: datetime
