"""
Bearer Token Authentication

Verifies signed session tokens issued by the identity provider and exposes
the authenticated ``(subject_id, role)`` pair to route handlers.

Token claims:
    sub: subject id (string form of the patient or doctor id)
    role: "patient" or "doctor"
    exp: expiry
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from clinic_scheduler.api.deps import get_services
from clinic_scheduler.container import ServiceContainer
from clinic_scheduler.models.database import Role

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated caller."""

    id: int
    role: Role

    @property
    def is_patient(self) -> bool:
        return self.role == Role.PATIENT


class TokenError(Exception):
    """Token missing, malformed, expired or carrying unknown claims."""
    pass


def create_access_token(
    subject_id: int,
    role: Role | str,
    secret_key: str,
    algorithm: str = "HS256",
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Issue a signed session token.

    The identity provider owns token issuance in production; this helper
    serves development tooling and tests.
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=60))
    claims = {
        "sub": str(subject_id),
        "role": Role(role).value,
        "exp": expire,
    }
    return jwt.encode(claims, secret_key, algorithm=algorithm)


def decode_access_token(token: str, secret_key: str, algorithm: str = "HS256") -> CurrentUser:
    """
    Verify a token and extract the caller.

    Raises:
        TokenError: If the token cannot be trusted
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError as e:
        raise TokenError(f"Token verification failed: {e}") from e

    try:
        return CurrentUser(id=int(payload["sub"]), role=Role(payload["role"]))
    except (KeyError, TypeError, ValueError) as e:
        raise TokenError(f"Token claims invalid: {e}") from e


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    services: ServiceContainer = Depends(get_services),
) -> CurrentUser:
    """
    FastAPI dependency resolving the authenticated caller.

    Raises:
        HTTPException 401: missing or invalid token
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return decode_access_token(
            credentials.credentials,
            services.settings.secret_key,
            services.settings.jwt_algorithm,
        )
    except TokenError as e:
        logger.warning(str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_role(*roles: Role):
    """
    Dependency factory restricting a route to the given roles.

    Usage:
        @router.post("/schedule")
        async def schedule(user: CurrentUser = Depends(require_role(Role.PATIENT))):
            ...
    """

    async def checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in roles:
            logger.warning(f"{user.role.value} {user.id} denied: requires {[r.value for r in roles]}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return checker
