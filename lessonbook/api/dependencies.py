# ============================================================================
# FILE: lessonbook/api/dependencies.py
# Authentication dependencies for identity-provider JWTs
# ============================================================================
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from uuid import UUID

from lessonbook.config.database import get_db
from lessonbook.config.settings import get_settings
from lessonbook.core.exceptions import UnauthorizedException
from lessonbook.core.permissions import ensure_can_hold, ensure_can_publish
from lessonbook.models.profile import Profile

# ============================================================================
# Security Schemes
# ============================================================================

# auto_error=False so a missing header becomes our own 401 body
jwt_security = HTTPBearer(
    scheme_name="JWT Bearer Token",
    description="Access token issued by the identity provider",
    auto_error=False,
)


# ============================================================================
# JWT Token Functions
# ============================================================================

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Production tokens come from the identity provider; this mints the same
    shape for local development and tests.

    Args:
        data: Dictionary with claims (should include 'sub' with the profile id)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    settings = get_settings()
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode.update({
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    })

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )


def verify_access_token(token: str) -> dict:
    """
    Verify and decode a JWT access token.

    Raises:
        UnauthorizedException: If token is invalid or expired
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except JWTError as e:
        raise UnauthorizedException(f"Could not validate credentials: {str(e)}")


# ============================================================================
# Authentication Dependencies
# ============================================================================

async def get_current_profile(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(jwt_security),
        db: Session = Depends(get_db)
) -> Profile:
    """
    Dependency to get the current authenticated profile from the bearer token.

    Raises:
        UnauthorizedException: If token is missing/invalid or the profile does not exist
    """
    if credentials is None:
        raise UnauthorizedException("Unauthorized")

    payload = verify_access_token(credentials.credentials)

    profile_id_str: Optional[str] = payload.get("sub")
    if profile_id_str is None:
        raise UnauthorizedException("Could not validate credentials")

    try:
        profile_id = UUID(profile_id_str)
    except ValueError:
        raise UnauthorizedException("Invalid user ID in token")

    profile = db.query(Profile).filter(Profile.id == profile_id).first()
    if profile is None or not profile.is_active:
        raise UnauthorizedException("Unauthorized")

    return profile


async def require_student(
        current_profile: Profile = Depends(get_current_profile)
) -> Profile:
    """Dependency that requires a student profile (holds and bookings)."""
    ensure_can_hold(current_profile)
    return current_profile


async def require_tutor(
        current_profile: Profile = Depends(get_current_profile)
) -> Profile:
    """Dependency that requires a tutor profile (slots and availability)."""
    ensure_can_publish(current_profile)
    return current_profile
