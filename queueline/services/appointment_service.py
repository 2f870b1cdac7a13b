from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from datetime import date
from typing import List, Optional
import logging

from ..core.config import settings
from ..core.security import AuthorizationError
from ..models.appointment import Appointment, AppointmentStatus, can_transition
from ..models.organization import Organization
from ..schemas.appointment import AppointmentCreate, AppointmentStatusUpdate
from .queue_policy import (
    calculate_queue_position, calculate_estimated_wait_time,
    is_slot_available, is_within_working_hours, update_queue_positions
)

logger = logging.getLogger(__name__)

REQUIRED_BOOKING_FIELDS = (
    "organization_id", "expert_name", "service_name",
    "appointment_date", "appointment_time"
)

def _parse_status(value: Optional[str]) -> Optional[AppointmentStatus]:
    if not value:
        return None
    try:
        return AppointmentStatus(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid status '{value}'. Allowed: {[s.value for s in AppointmentStatus]}"
        )

class AppointmentService:
    def __init__(self, db: Session):
        self.db = db

    def book_appointment(self, user_id: int, booking: AppointmentCreate) -> Appointment:
        """Validate and create a pending appointment for ``user_id``."""
        if any(not getattr(booking, field) for field in REQUIRED_BOOKING_FIELDS):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Please provide all required fields"
            )

        organization = self._get_organization(booking.organization_id)

        if booking.appointment_date < date.today():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot book appointment in the past"
            )

        if not is_within_working_hours(
            organization.working_hours,
            booking.appointment_date,
            booking.appointment_time
        ):
            logger.warning(
                f"Rejected booking for organization {organization.id}: "
                f"{booking.appointment_date} {booking.appointment_time} outside working hours"
            )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Appointment time is outside working hours, on a day off, "
                       "or organization is temporarily closed"
            )

        # Experts are identified by name; the first roster match wins
        expert = organization.find_expert(booking.expert_name)
        if not expert:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Expert not found"
            )

        if not expert.get("available", True):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Expert is not available"
            )

        if not is_slot_available(
            self.db,
            organization.id,
            booking.appointment_date,
            booking.appointment_time,
            booking.expert_name
        ):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Slot is already taken"
            )

        queue_position = calculate_queue_position(
            self.db, organization.id, booking.appointment_date
        )
        estimated_wait_time = calculate_estimated_wait_time(
            queue_position, organization.appointment_duration
        )

        appointment = Appointment(
            user_id=user_id,
            organization_id=organization.id,
            expert_name=booking.expert_name,
            service_name=booking.service_name,
            appointment_date=booking.appointment_date,
            appointment_time=booking.appointment_time,
            status=AppointmentStatus.PENDING,
            queue_position=queue_position,
            estimated_wait_time=estimated_wait_time,
            notes=booking.notes
        )

        self.db.add(appointment)
        self.db.commit()
        self.db.refresh(appointment)

        logger.info(
            f"Booked appointment {appointment.id} at organization {organization.id} "
            f"(queue position {queue_position})"
        )
        return appointment

    def get_user_appointments(self, user_id: int, status_filter: Optional[str] = None) -> List[Appointment]:
        """Appointments of a user, most recent first."""
        query = self.db.query(Appointment).filter(Appointment.user_id == user_id)

        appointment_status = _parse_status(status_filter)
        if appointment_status:
            query = query.filter(Appointment.status == appointment_status)

        return query.order_by(
            Appointment.appointment_date.desc(),
            Appointment.appointment_time.desc()
        ).all()

    def get_organization_appointments(
        self,
        organization_id: int,
        acting_user_id: int,
        status_filter: Optional[str] = None,
        appointment_date: Optional[date] = None
    ) -> List[Appointment]:
        """Appointments of an organization in queue order; owner only."""
        organization = self._get_organization(organization_id)
        if organization.user_id != acting_user_id:
            raise AuthorizationError("Not authorized to view these appointments")

        query = self.db.query(Appointment).filter(
            Appointment.organization_id == organization_id
        )

        appointment_status = _parse_status(status_filter)
        if appointment_status:
            query = query.filter(Appointment.status == appointment_status)

        if appointment_date:
            query = query.filter(Appointment.appointment_date == appointment_date)

        return query.order_by(
            Appointment.appointment_date.asc(),
            Appointment.appointment_time.asc(),
            Appointment.queue_position.asc()
        ).all()

    def update_status(
        self,
        appointment_id: int,
        status_data: AppointmentStatusUpdate,
        acting_user_id: int
    ) -> Appointment:
        """Set the status of an appointment on behalf of its organization."""
        new_status = _parse_status(status_data.status)
        if not new_status:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Please provide status"
            )

        appointment = self._get_appointment(appointment_id)

        organization = self.db.query(Organization).filter(
            Organization.id == appointment.organization_id
        ).first()
        if not organization or organization.user_id != acting_user_id:
            raise AuthorizationError("Not authorized to update this appointment")

        if settings.ENFORCE_STATUS_TRANSITIONS and not can_transition(appointment.status, new_status):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot change status from {appointment.status.value} to {new_status.value}"
            )

        appointment.status = new_status
        self.db.commit()

        if new_status in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED):
            update_queue_positions(self.db, appointment.organization_id, appointment.appointment_date)

        self.db.refresh(appointment)
        logger.info(f"Appointment {appointment.id} status set to {new_status.value}")
        return appointment

    def cancel_appointment(self, appointment_id: int, acting_user_id: int) -> Appointment:
        """Cancel an appointment on behalf of the user who booked it."""
        appointment = self._get_appointment(appointment_id)

        if appointment.user_id != acting_user_id:
            raise AuthorizationError("Not authorized to cancel this appointment")

        if appointment.status == AppointmentStatus.COMPLETED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot cancel completed appointment"
            )

        if appointment.status == AppointmentStatus.CANCELLED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Appointment is already cancelled"
            )

        appointment.status = AppointmentStatus.CANCELLED
        self.db.commit()

        update_queue_positions(self.db, appointment.organization_id, appointment.appointment_date)

        self.db.refresh(appointment)
        logger.info(f"Appointment {appointment.id} cancelled by user {acting_user_id}")
        return appointment

    def get_appointment(self, appointment_id: int, acting_user_id: int) -> Appointment:
        """Fetch an appointment visible to its user or its organization's owner."""
        appointment = self._get_appointment(appointment_id)

        organization = self.db.query(Organization).filter(
            Organization.id == appointment.organization_id
        ).first()
        is_owner = appointment.user_id == acting_user_id
        is_org_owner = organization is not None and organization.user_id == acting_user_id

        if not is_owner and not is_org_owner:
            raise AuthorizationError("Not authorized to view this appointment")

        return appointment

    def _get_organization(self, organization_id: int) -> Organization:
        organization = self.db.query(Organization).filter(
            Organization.id == organization_id
        ).first()

        if not organization:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Organization not found"
            )
        return organization

    def _get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id
        ).first()

        if not appointment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Appointment not found"
            )
        return appointment
