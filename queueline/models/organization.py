from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, JSON, CheckConstraint, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from ..core.database import Base

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

class OrganizationCategory(str, enum.Enum):
    HOSPITAL = "Hospital"
    CLINIC = "Clinic"
    BANK = "Bank"
    SERVICE_CENTER = "Service Center"
    GOVERNMENT_OFFICE = "Government Office"
    OTHER = "Other"

def time_to_minutes(value: str) -> int:
    """Convert an "HH:MM" string to minutes since midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)

def find_open_schedule(working_hours, day_name: str):
    """Return the first open working-hours entry for ``day_name``, if any."""
    for entry in working_hours or []:
        if entry.get("day") == day_name and entry.get("is_open", True):
            return entry
    return None

class Organization(Base):
    __tablename__ = "organizations"
    __table_args__ = (
        CheckConstraint(
            "appointment_duration >= 5 AND appointment_duration <= 240",
            name="ck_organizations_appointment_duration"
        ),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    
    # Profile
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(SQLEnum(OrganizationCategory), nullable=False, default=OrganizationCategory.OTHER)
    address = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    
    # Scheduling
    # [{"day": "Monday", "start_time": "09:00", "end_time": "17:00", "is_open": true}, ...]
    working_hours = Column(JSON, nullable=False, default=list)
    # [{"name": "Dr. A", "specialization": "GP", "available": true}, ...]
    experts = Column(JSON, nullable=False, default=list)
    appointment_duration = Column(Integer, nullable=False, default=30)
    
    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    
    owner = relationship("User", lazy="joined")
    
    @property
    def is_currently_open(self) -> bool:
        return self.is_open_at(datetime.now())

    def is_open_at(self, moment: datetime) -> bool:
        """Whether ``moment`` falls inside that weekday's first open interval, ends included."""
        schedule = find_open_schedule(self.working_hours, DAY_NAMES[moment.weekday()])
        if not schedule:
            return False

        current = moment.hour * 60 + moment.minute
        return time_to_minutes(schedule["start_time"]) <= current <= time_to_minutes(schedule["end_time"])
    
    def find_expert(self, expert_name: str):
        """Return the first roster entry named ``expert_name``."""
        for expert in self.experts or []:
            if expert.get("name") == expert_name:
                return expert
        return None
    
    def __repr__(self):
        return f"<Organization(id={self.id}, name='{self.name}', category='{self.category}')>"
