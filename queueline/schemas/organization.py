"""Organization schemas."""
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Literal, Optional

from ..models.organization import OrganizationCategory
from .auth import UserSummary

TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"

DayName = Literal["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

class WorkingHoursEntry(BaseModel):
    day: DayName
    start_time: str = Field(..., pattern=TIME_PATTERN, description="HH:MM format")
    end_time: str = Field(..., pattern=TIME_PATTERN, description="HH:MM format")
    is_open: bool = True

class Expert(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    specialization: str = Field(..., min_length=1, max_length=100)
    available: bool = True

class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: OrganizationCategory = OrganizationCategory.OTHER
    working_hours: List[WorkingHoursEntry] = []
    experts: List[Expert] = []
    appointment_duration: Optional[int] = Field(None, ge=5, le=240)
    address: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)

class OrganizationUpdate(BaseModel):
    """Partial update; only fields present in the request are replaced."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[OrganizationCategory] = None
    working_hours: Optional[List[WorkingHoursEntry]] = None
    experts: Optional[List[Expert]] = None
    appointment_duration: Optional[int] = Field(None, ge=5, le=240)
    address: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)

class OrganizationSummary(BaseModel):
    """Display fields of an organization embedded in appointment payloads."""
    model_config = ConfigDict(from_attributes=True)
    
    id: int
    name: str
    category: OrganizationCategory
    address: Optional[str] = None
    phone: Optional[str] = None

class OrganizationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: int
    user_id: int
    name: str
    description: Optional[str] = None
    category: OrganizationCategory
    working_hours: List[WorkingHoursEntry]
    experts: List[Expert]
    appointment_duration: int
    address: Optional[str] = None
    phone: Optional[str] = None
    is_currently_open: bool
    owner: Optional[UserSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class TodayCounts(BaseModel):
    total: int
    completed: int
    pending: int

class OverallCounts(BaseModel):
    pending: int
    in_progress: int
    completed: int
    cancelled: int

class OrganizationAnalytics(BaseModel):
    total: int
    today: TodayCounts
    overall: OverallCounts
