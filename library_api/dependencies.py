"""
FastAPI dependencies: database access and principal resolution.
"""

from typing import Optional

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from library_api.auth import APIKeyManager
from library_api.database import LibraryDatabaseService
from library_api.models import User

logger = structlog.get_logger(__name__)

authorization_header = APIKeyHeader(
    name="Authorization",
    auto_error=False,
    description="Token token=<api_key>",
)

UNAUTHORIZED_HEADERS = {"WWW-Authenticate": 'Token realm="Application"'}


def get_db_service(request: Request) -> LibraryDatabaseService:
    """Return the database service created during application startup."""
    db_service = getattr(request.app.state, "db_service", None)
    if db_service is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database service not available"
        )
    return db_service


async def get_current_user(
    authorization: Optional[str] = Depends(authorization_header),
    db_service: LibraryDatabaseService = Depends(get_db_service),
) -> User:
    """
    Resolve the request's API key to a principal.

    Raises:
        HTTPException: 401 if the key is missing or unknown
    """
    api_key = APIKeyManager.parse_authorization(authorization)
    if api_key is None:
        logger.warning("Missing or malformed Authorization header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key",
            headers=UNAUTHORIZED_HEADERS,
        )

    user = await db_service.get_user_by_api_key(api_key)
    if user is None:
        logger.warning("Invalid API key attempted", api_key=APIKeyManager.mask(api_key))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers=UNAUTHORIZED_HEADERS,
        )

    structlog.contextvars.bind_contextvars(principal_id=user.id, principal_role=user.role.value)
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """
    Require an admin principal.

    Raises:
        HTTPException: 401 if the principal is not an admin
    """
    if not user.is_admin:
        logger.warning("Admin access denied", user_id=user.id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin access required",
            headers=UNAUTHORIZED_HEADERS,
        )
    return user
