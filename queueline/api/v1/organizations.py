from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...api.deps import get_current_user, get_organization_user
from ...services.organization_service import OrganizationService
from ...schemas.organization import OrganizationCreate, OrganizationUpdate, OrganizationResponse
from ...models.organization import OrganizationCategory
from ...models.user import User

router = APIRouter(prefix="/organizations", tags=["Organizations"])

# Public routes
@router.get("")
async def list_organizations(
    category: Optional[OrganizationCategory] = None,
    db: Session = Depends(get_db)
):
    """List organizations, optionally by category."""
    organizations = OrganizationService(db).list_organizations(category)
    
    return {
        "success": True,
        "count": len(organizations),
        "data": {"organizations": [OrganizationResponse.model_validate(o) for o in organizations]}
    }

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_organization(
    org_data: OrganizationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_organization_user)
):
    """Create the organization profile of the current user."""
    organization = OrganizationService(db).create_organization(current_user.id, org_data)
    
    return {
        "success": True,
        "message": "Organization created successfully",
        "data": {"organization": OrganizationResponse.model_validate(organization)}
    }

@router.get("/user/{user_id}")
async def get_organization_by_user(
    user_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user)
):
    """Get the organization owned by a user."""
    organization = OrganizationService(db).get_organization_by_user(user_id)
    return {"success": True, "data": {"organization": OrganizationResponse.model_validate(organization)}}

@router.get("/{organization_id}")
async def get_organization(
    organization_id: int,
    db: Session = Depends(get_db)
):
    """Get organization by ID."""
    organization = OrganizationService(db).get_organization(organization_id)
    return {"success": True, "data": {"organization": OrganizationResponse.model_validate(organization)}}

@router.put("/{organization_id}")
async def update_organization(
    organization_id: int,
    org_data: OrganizationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_organization_user)
):
    """Update organization profile (owner only)."""
    organization = OrganizationService(db).update_organization(
        organization_id, org_data, current_user.id
    )
    
    return {
        "success": True,
        "message": "Organization updated successfully",
        "data": {"organization": OrganizationResponse.model_validate(organization)}
    }

@router.get("/{organization_id}/analytics")
async def get_organization_analytics(
    organization_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_organization_user)
):
    """Appointment counts for the organization (owner only)."""
    analytics = OrganizationService(db).get_analytics(organization_id, current_user.id)
    return {"success": True, "data": {"analytics": analytics}}
