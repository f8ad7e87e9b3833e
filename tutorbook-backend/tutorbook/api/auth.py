"""
Authentication

Bearer JWTs issued by the identity provider are verified with a shared
secret. The caller's id and role become a CurrentUser that route handlers
pass explicitly into the booking service.
"""
import logging
import os
from typing import Any, Dict, Optional
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jwt import PyJWTError

from tutorbook.schemas import CurrentUser

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)

AUTH_JWT_SECRET = os.getenv("AUTH_JWT_SECRET", "dev-secret-change-me")
AUTH_JWT_ALGORITHM = os.getenv("AUTH_JWT_ALGORITHM", "HS256")
AUTH_JWT_AUDIENCE = os.getenv("AUTH_JWT_AUDIENCE") or None

ROLES = ("admin", "tutor", "student")


def _unauthorized(code: str, message: str, details: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": {
                "code": code,
                "message": message,
                "details": details
            }
        },
        headers={"WWW-Authenticate": "Bearer"}
    )


def decode_token(token: str) -> Dict[str, Any]:
    """
    Verify signature and expiry of an access token.

    The audience is only checked when AUTH_JWT_AUDIENCE is set.
    """
    options = {"verify_aud": AUTH_JWT_AUDIENCE is not None}
    return jwt.decode(
        token,
        AUTH_JWT_SECRET,
        algorithms=[AUTH_JWT_ALGORITHM],
        audience=AUTH_JWT_AUDIENCE,
        options=options,
    )


def role_from_claims(claims: Dict[str, Any]) -> Optional[str]:
    """Role from user_role, role or app_metadata.role, first one set wins."""
    app_metadata = claims.get("app_metadata") or {}
    for candidate in (claims.get("user_role"), claims.get("role"), app_metadata.get("role")):
        if candidate in ROLES:
            return candidate
    return None


def user_from_claims(claims: Dict[str, Any]) -> CurrentUser:
    try:
        user_id = UUID(str(claims.get("sub")))
    except ValueError:
        raise _unauthorized("AUTH_004", "Invalid token subject", "The token subject is not a user id")

    role = role_from_claims(claims)
    if role is None:
        raise _unauthorized("AUTH_005", "Missing role", "The token does not carry a known role")
    return CurrentUser(id=user_id, role=role)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    """
    Resolve the caller from the bearer token.

    Raises:
        HTTPException 401: Missing, malformed or invalid token
    """
    if credentials is None:
        raise _unauthorized("AUTH_001", "Authorization header missing", "Please provide a valid bearer token")

    try:
        claims = decode_token(credentials.credentials)
    except PyJWTError as e:
        logger.warning(f"Rejected token: {e}")
        raise _unauthorized("AUTH_002", "Invalid or expired token", "The provided token is not valid")

    return user_from_claims(claims)


def require_roles(*roles: str):
    """Dependency accepting only callers with one of the given roles."""

    async def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in roles:
            logger.warning(f"{user.role} {user.id} denied; requires {', '.join(roles)}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": {
                        "code": "FORBIDDEN",
                        "message": "You do not have permission to perform this action",
                        "details": {"required_roles": list(roles)}
                    }
                }
            )
        return user

    return dependency
