"""
Authentication dependencies
"""
from dataclasses import dataclass
from fastapi import Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import logging

from momento.core.exceptions import BadRequestError, ForbiddenError, UnauthorizedError
from momento.core.security import decode_token
from momento.db.models.enums import UserRole
from momento.utils.logger import set_log_context

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    """Caller identity taken from the access token claims"""
    id: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.SUPERADMIN)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> CurrentUser:
    """
    Get current authenticated user from JWT token

    Raises:
        UnauthorizedError: If the token is missing, invalid or has no subject
    """
    if credentials is None:
        raise UnauthorizedError()

    payload = decode_token(credentials.credentials)

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Could not validate credentials")

    try:
        role = UserRole(payload.get("role", UserRole.USER.value))
    except ValueError:
        logger.warning(f"Unknown role claim for user {user_id}, treating as user")
        role = UserRole.USER

    set_log_context(user_id=str(user_id))
    return CurrentUser(id=str(user_id), role=role)


async def get_current_admin_user(
    current_user: CurrentUser = Depends(get_current_user)
) -> CurrentUser:
    """
    Get current admin or superadmin user

    Raises:
        ForbiddenError: If user is not admin or superadmin
    """
    if not current_user.is_admin:
        raise ForbiddenError("Insufficient permissions. Admin role required.")
    return current_user


async def get_device_id(
    x_device_id: Optional[str] = Header(None)
) -> str:
    """
    Guest device identifier from the X-Device-ID header

    Raises:
        BadRequestError: If the header is missing or blank
    """
    if not x_device_id or not x_device_id.strip():
        raise BadRequestError("X-Device-ID header is required")
    return x_device_id.strip()
