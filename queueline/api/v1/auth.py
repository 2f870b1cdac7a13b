from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_current_user, rate_limit_check, get_current_user_token
from ...services.auth_service import AuthService
from ...schemas.auth import (
    UserLogin, UserRegister, UserResponse, RefreshTokenRequest, ChangePassword
)
from ...models.user import User

router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Register a new user and log them in."""
    auth_service = AuthService(db)
    user = auth_service.register_user(user_data)
    tokens = auth_service.issue_tokens(user)
    
    return {
        "success": True,
        "message": "User registered successfully",
        "data": tokens
    }

@router.post("/login")
async def login(
    login_data: UserLogin,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Authenticate user and return access tokens."""
    auth_service = AuthService(db)
    return {"success": True, "data": auth_service.authenticate_user(login_data)}

@router.post("/refresh")
async def refresh_token(
    refresh_data: RefreshTokenRequest,
    db: Session = Depends(get_db)
):
    """Refresh access token using refresh token."""
    auth_service = AuthService(db)
    return {"success": True, "data": auth_service.refresh_access_token(refresh_data.refresh_token)}

@router.post("/logout")
async def logout(
    refresh_data: RefreshTokenRequest,
    db: Session = Depends(get_db)
):
    """Logout user by revoking refresh token."""
    auth_service = AuthService(db)
    revoked = auth_service.logout_user(refresh_data.refresh_token)
    
    return {
        "success": True,
        "message": "Successfully logged out" if revoked else "Logout completed"
    }

@router.get("/me")
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user information."""
    return {"success": True, "data": {"user": UserResponse.model_validate(current_user)}}

@router.post("/change-password")
async def change_password(
    password_data: ChangePassword,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Change user password."""
    AuthService(db).change_password(
        current_user, password_data.current_password, password_data.new_password
    )
    
    return {"success": True, "message": "Password changed successfully"}

@router.post("/verify-token")
async def verify_token_endpoint(
    token_payload = Depends(get_current_user_token)
):
    """Verify if token is valid."""
    return {
        "success": True,
        "data": {
            "valid": True,
            "user_id": token_payload.sub,
            "email": token_payload.email,
            "role": token_payload.role,
            "expires": token_payload.exp
        }
    }
