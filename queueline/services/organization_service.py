from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from datetime import date
from typing import List, Optional
import logging

from ..core.config import settings
from ..core.security import AuthorizationError
from ..models.appointment import Appointment, AppointmentStatus
from ..models.organization import Organization, OrganizationCategory
from ..schemas.organization import (
    OrganizationCreate, OrganizationUpdate, OrganizationAnalytics,
    TodayCounts, OverallCounts
)

logger = logging.getLogger(__name__)

class OrganizationService:
    def __init__(self, db: Session):
        self.db = db

    def create_organization(self, user_id: int, org_data: OrganizationCreate) -> Organization:
        """Create the organization profile owned by ``user_id``."""
        existing_org = self.db.query(Organization).filter(
            Organization.user_id == user_id
        ).first()

        if existing_org:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Organization profile already exists for this user"
            )

        organization = Organization(
            user_id=user_id,
            name=org_data.name,
            description=org_data.description,
            category=org_data.category,
            working_hours=[entry.model_dump() for entry in org_data.working_hours],
            experts=[expert.model_dump() for expert in org_data.experts],
            appointment_duration=org_data.appointment_duration or settings.DEFAULT_APPOINTMENT_DURATION,
            address=org_data.address,
            phone=org_data.phone
        )

        self.db.add(organization)
        self.db.commit()
        self.db.refresh(organization)

        logger.info(f"Created organization {organization.id} for user {user_id}")
        return organization

    def update_organization(
        self,
        organization_id: int,
        org_data: OrganizationUpdate,
        acting_user_id: int
    ) -> Organization:
        """Replace the fields present in ``org_data``; owner only."""
        organization = self.get_organization(organization_id)

        if organization.user_id != acting_user_id:
            raise AuthorizationError("Not authorized to update this organization")

        updates = org_data.model_dump(exclude_unset=True)
        for field, value in updates.items():
            if value is None and field in ("name", "category", "working_hours", "experts", "appointment_duration"):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Field '{field}' cannot be null"
                )
            setattr(organization, field, value)

        self.db.commit()
        self.db.refresh(organization)

        logger.info(f"Updated organization {organization.id}: {sorted(updates)}")
        return organization

    def list_organizations(self, category: Optional[OrganizationCategory] = None) -> List[Organization]:
        query = self.db.query(Organization)
        if category:
            query = query.filter(Organization.category == category)
        return query.order_by(Organization.id.asc()).all()

    def get_organization(self, organization_id: int) -> Organization:
        organization = self.db.query(Organization).filter(
            Organization.id == organization_id
        ).first()

        if not organization:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Organization not found"
            )
        return organization

    def get_organization_by_user(self, user_id: int) -> Organization:
        organization = self.db.query(Organization).filter(
            Organization.user_id == user_id
        ).first()

        if not organization:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Organization not found for this user"
            )
        return organization

    def get_analytics(self, organization_id: int, acting_user_id: int) -> OrganizationAnalytics:
        """Appointment counts for the organization, overall and for today."""
        organization = self.get_organization(organization_id)

        if organization.user_id != acting_user_id:
            raise AuthorizationError("Not authorized to view this organization analytics")

        today = date.today()

        def count(appointment_status: Optional[AppointmentStatus] = None, day: Optional[date] = None) -> int:
            query = self.db.query(Appointment).filter(
                Appointment.organization_id == organization_id
            )
            if appointment_status:
                query = query.filter(Appointment.status == appointment_status)
            if day:
                query = query.filter(Appointment.appointment_date == day)
            return query.count()

        return OrganizationAnalytics(
            total=count(),
            today=TodayCounts(
                total=count(day=today),
                completed=count(AppointmentStatus.COMPLETED, today),
                pending=count(AppointmentStatus.PENDING, today)
            ),
            overall=OverallCounts(
                pending=count(AppointmentStatus.PENDING),
                in_progress=count(AppointmentStatus.IN_PROGRESS),
                completed=count(AppointmentStatus.COMPLETED),
                cancelled=count(AppointmentStatus.CANCELLED)
            )
        )
