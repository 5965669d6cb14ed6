"""
Access token verification.

Tokens are issued by the auth service; this service only verifies them.
"""
from typing import Optional, Dict, Any
from jose import JWTError, jwt

from momento.core.config import settings
from momento.core.exceptions import UnauthorizedError


def decode_token(token: str, expected_type: Optional[str] = "access") -> Dict[str, Any]:
    """
    Decode and verify a JWT token

    Args:
        token: JWT token to decode
        expected_type: Expected token type ("access" or "refresh"). Set to None to skip validation.

    Returns:
        Decoded token payload

    Raises:
        UnauthorizedError: If token is invalid, expired, or wrong type
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        raise UnauthorizedError("Could not validate credentials")

    if expected_type is not None and payload.get("type") != expected_type:
        raise UnauthorizedError(f"Invalid token type. Expected {expected_type} token.")

    return payload
