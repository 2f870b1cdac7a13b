from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional

from ...core.database import get_db
from ...api.deps import get_current_user, get_customer_user, get_organization_user
from ...services.appointment_service import AppointmentService
from ...schemas.appointment import AppointmentCreate, AppointmentStatusUpdate, AppointmentResponse
from ...models.user import User

router = APIRouter(prefix="/appointments", tags=["Appointments"])

# User role
@router.post("", status_code=status.HTTP_201_CREATED)
async def book_appointment(
    booking: AppointmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_customer_user)
):
    """Book a new appointment."""
    appointment = AppointmentService(db).book_appointment(current_user.id, booking)
    
    return {
        "success": True,
        "message": "Appointment booked successfully",
        "data": {"appointment": AppointmentResponse.model_validate(appointment)}
    }

@router.get("/user")
async def get_user_appointments(
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_customer_user)
):
    """List the current user's appointments, most recent first."""
    appointments = AppointmentService(db).get_user_appointments(current_user.id, status_filter)
    
    return {
        "success": True,
        "count": len(appointments),
        "data": {"appointments": [AppointmentResponse.model_validate(a) for a in appointments]}
    }

@router.delete("/{appointment_id}")
async def cancel_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_customer_user)
):
    """Cancel one of the current user's appointments."""
    appointment = AppointmentService(db).cancel_appointment(appointment_id, current_user.id)
    
    return {
        "success": True,
        "message": "Appointment cancelled successfully",
        "data": {"appointment": AppointmentResponse.model_validate(appointment)}
    }

# Organization role
@router.get("/organization/{organization_id}")
async def get_organization_appointments(
    organization_id: int,
    status_filter: Optional[str] = Query(None, alias="status"),
    appointment_date: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_organization_user)
):
    """List an organization's appointments in queue order."""
    appointments = AppointmentService(db).get_organization_appointments(
        organization_id, current_user.id, status_filter, appointment_date
    )
    
    return {
        "success": True,
        "count": len(appointments),
        "data": {"appointments": [AppointmentResponse.model_validate(a) for a in appointments]}
    }

@router.put("/{appointment_id}/status")
async def update_appointment_status(
    appointment_id: int,
    status_data: AppointmentStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_organization_user)
):
    """Update appointment status (organization owner only)."""
    appointment = AppointmentService(db).update_status(appointment_id, status_data, current_user.id)
    
    return {
        "success": True,
        "message": "Appointment status updated successfully",
        "data": {"appointment": AppointmentResponse.model_validate(appointment)}
    }

# Any authenticated principal
@router.get("/{appointment_id}")
async def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get appointment by ID."""
    appointment = AppointmentService(db).get_appointment(appointment_id, current_user.id)
    return {"success": True, "data": {"appointment": AppointmentResponse.model_validate(appointment)}}
