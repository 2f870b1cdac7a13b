from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from datetime import datetime, timedelta
import hashlib
import logging

from ..core.config import settings
from ..models.user import User, RefreshToken
from ..core.security import (
    verify_password, get_password_hash, create_token_pair, verify_token
)
from ..schemas.auth import UserLogin, UserRegister, TokenResponse, UserResponse

logger = logging.getLogger(__name__)

class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def register_user(self, user_data: UserRegister) -> User:
        """Register a new user."""
        existing_user = self.db.query(User).filter(
            User.email == user_data.email
        ).first()

        if existing_user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        new_user = User(
            name=user_data.name,
            email=user_data.email,
            password_hash=get_password_hash(user_data.password),
            phone=user_data.phone,
            role=user_data.role,
            is_active=True
        )

        self.db.add(new_user)
        self.db.commit()
        self.db.refresh(new_user)

        logger.info(f"Registered user {new_user.id} with role {new_user.role.value}")
        return new_user

    def issue_tokens(self, user: User) -> TokenResponse:
        """Create and store a token pair for ``user``."""
        tokens = create_token_pair(user.id, user.email, user.role)
        self._store_refresh_token(user.id, tokens.refresh_token)

        self.db.commit()

        return TokenResponse(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
            user=UserResponse.model_validate(user)
        )

    def authenticate_user(self, login_data: UserLogin) -> TokenResponse:
        """Authenticate user and return tokens."""
        user = self.db.query(User).filter(
            User.email == login_data.email
        ).first()

        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password"
            )

        # Check account lockout
        if user.locked_until and user.locked_until > datetime.utcnow():
            raise HTTPException(
                status_code=status.HTTP_423_LOCKED,
                detail="Account is temporarily locked"
            )

        if not verify_password(login_data.password, user.password_hash):
            self._handle_failed_login(user)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Account is deactivated"
            )

        # Reset failed login attempts
        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login = datetime.utcnow()

        return self.issue_tokens(user)

    def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """Refresh access token using refresh token."""
        token_payload = verify_token(refresh_token)
        if not token_payload or token_payload.token_type != "refresh":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid refresh token"
            )

        # Check if refresh token exists in database
        token_hash = hashlib.sha256(refresh_token.encode()).hexdigest()
        stored_token = self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == token_hash,
            RefreshToken.is_revoked == False,
            RefreshToken.expires_at > datetime.utcnow()
        ).first()

        if not stored_token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired refresh token"
            )

        user = self.db.query(User).filter(
            User.id == token_payload.sub
        ).first()

        if not user or not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found or inactive"
            )

        # Storing the new pair revokes the old refresh token
        return self.issue_tokens(user)

    def logout_user(self, refresh_token: str) -> bool:
        """Logout user by revoking refresh token."""
        token_hash = hashlib.sha256(refresh_token.encode()).hexdigest()
        revoked = self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == token_hash,
            RefreshToken.is_revoked == False
        ).update({"is_revoked": True})

        self.db.commit()
        return revoked > 0

    def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.password_hash):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current password is incorrect"
            )

        user.password_hash = get_password_hash(new_password)

        # Existing sessions must log in again
        self.db.query(RefreshToken).filter(
            RefreshToken.user_id == user.id
        ).update({"is_revoked": True})

        self.db.commit()

    def _handle_failed_login(self, user: User):
        """Handle failed login attempt."""
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1

        if user.failed_login_attempts >= settings.MAX_FAILED_LOGINS:
            user.locked_until = datetime.utcnow() + timedelta(minutes=settings.LOCKOUT_MINUTES)
            logger.warning(f"Locked account {user.id} after {user.failed_login_attempts} failed logins")

        self.db.commit()

    def _store_refresh_token(self, user_id: int, refresh_token: str):
        """Store refresh token in database."""
        token_hash = hashlib.sha256(refresh_token.encode()).hexdigest()

        token_payload = verify_token(refresh_token)
        expires_at = datetime.utcfromtimestamp(token_payload.exp) if token_payload and token_payload.exp else datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

        # One live refresh token per user
        self.db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id
        ).update({"is_revoked": True})

        new_token = RefreshToken(
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at
        )

        self.db.add(new_token)
