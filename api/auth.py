"""
API key authentication and role checks for the FastAPI API.
"""

from enum import Enum
from typing import Callable

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.config import config

logger = structlog.get_logger(__name__)

# Security scheme
security = HTTPBearer()


class Role(str, Enum):
    """Roles an API key can carry."""
    ADMIN = "admin"
    USER = "user"


class Principal:
    """Caller identified by an API key."""

    def __init__(self, api_key: str, role: Role):
        self.api_key = api_key
        self.role = role

    def masked_key(self) -> str:
        return self.api_key[:10] + "..."


async def verify_api_key(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Principal:
    """
    Resolve the bearer API key to a principal.

    Raises:
        HTTPException: 401 if the key is unknown
    """
    api_key = credentials.credentials
    role = config.role_by_key().get(api_key)

    if role is None:
        logger.warning("Invalid API key attempted", api_key=api_key[:10] + "...")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Principal(api_key, Role(role))


def require_roles(*roles: Role) -> Callable:
    """
    Build a dependency that admits only the given roles.

    Args:
        *roles: Roles allowed to call the endpoint

    Returns:
        FastAPI dependency returning the principal
    """
    async def dependency(principal: Principal = Depends(verify_api_key)) -> Principal:
        if principal.role not in roles:
            logger.warning(
                "Access denied",
                api_key=principal.masked_key(),
                role=principal.role.value,
                required=[role.value for role in roles]
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied",
            )
        return principal

    return dependency


require_admin = require_roles(Role.ADMIN)
require_reader = require_roles(Role.ADMIN, Role.USER)
