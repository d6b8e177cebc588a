"""
Authentication Service
Handles sign-in, token issuance and the request-scoped acting context
"""

from datetime import datetime
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from expenseflow.config.database import get_db
from expenseflow.models.profile import Profile
from expenseflow.schemas.auth import RequestContext
from expenseflow.utils.security import verify_password, create_access_token, create_refresh_token, decode_token
from expenseflow.utils.logger import setup_logger

logger = setup_logger()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


class AuthService:
    """Authentication service"""

    def authenticate_user(self, db: Session, email: str, password: str) -> Optional[Profile]:
        """
        Authenticate a profile with email and password

        Args:
            db: Database session
            email: Login email
            password: Password

        Returns:
            Profile: Authenticated profile or None
        """
        profile = db.query(Profile).filter(Profile.email == email.lower()).first()

        if not profile:
            return None

        if not verify_password(password, profile.hashed_password):
            return None

        profile.last_login = datetime.utcnow()
        db.commit()

        logger.info(f"User authenticated: {profile.email}")
        return profile

    def create_tokens(self, profile: Profile) -> dict:
        """
        Create access and refresh tokens for a profile

        Args:
            profile: Profile object

        Returns:
            dict: Access and refresh tokens
        """
        access_token = create_access_token(
            data={
                "sub": str(profile.id),
                "email": profile.email,
                "role": profile.role.value,
                "company_id": profile.company_id
            }
        )

        refresh_token = create_refresh_token(
            data={"sub": str(profile.id)}
        )

        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer"
        }

    async def get_current_user(
        self,
        token: str = Depends(oauth2_scheme),
        db: Session = Depends(get_db)
    ) -> Profile:
        """
        Get current authenticated profile from token

        Raises:
            HTTPException: If authentication fails
        """
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

        payload = decode_token(token)
        if payload is None or payload.get("type") != "access":
            raise credentials_exception

        user_id = payload.get("sub")
        if user_id is None:
            raise credentials_exception

        profile = db.query(Profile).filter(Profile.id == int(user_id)).first()
        if profile is None:
            raise credentials_exception

        return profile

    def context_for(self, profile: Profile) -> RequestContext:
        """Build the acting context passed into every service call"""
        return RequestContext(
            user_id=profile.id,
            company_id=profile.company_id,
            role=profile.role,
            email=profile.email
        )

    async def get_request_context(
        self,
        token: str = Depends(oauth2_scheme),
        db: Session = Depends(get_db)
    ) -> RequestContext:
        """Dependency yielding the RequestContext of the caller"""
        profile = await self.get_current_user(token=token, db=db)
        return self.context_for(profile)

    def require_permission(self, permission: str):
        """
        Dependency factory requiring a specific permission

        Args:
            permission: Required permission
        """
        async def permission_checker(current_user: Profile = Depends(self.get_current_user)):
            if not current_user.has_permission(permission):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Permission denied: {permission} required"
                )
            return current_user

        return permission_checker

    def require_role(self, *roles: str):
        """
        Dependency factory requiring specific role(s)

        Args:
            roles: Allowed roles
        """
        async def role_checker(current_user: Profile = Depends(self.get_current_user)):
            if current_user.role.value not in roles:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Access denied. Required role(s): {', '.join(roles)}"
                )
            return current_user

        return role_checker


# Create singleton instance
auth_service = AuthService()
