"""
Authorization dependencies for FastAPI endpoint protection.
Operator endpoints require studio staff; gallery content access is decided
separately by the gallery access validator.
"""
from fastapi import Depends, HTTPException, Request, status
import logging

from models.user import User
from services.auth import get_current_user
from services.security import SecurityUtils

logger = logging.getLogger(__name__)

class AuthorizationError(HTTPException):
    """Authorization failure surfaced as 403."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )

class PhotographerChecker:
    """
    Dependency allowing only studio staff through.
    """

    async def __call__(self, request: Request, current_user: User = Depends(get_current_user)) -> User:
        if not current_user.is_photographer:
            SecurityUtils.log_security_event(
                "authorization_denied",
                {
                    "user_id": current_user.id,
                    "endpoint": str(request.url.path),
                    "method": request.method,
                    "reason": "photographer_required"
                },
                user_email=current_user.email,
                client_ip=SecurityUtils.get_client_ip(request),
                level=logging.WARNING
            )
            raise AuthorizationError(detail="Access denied: studio staff only")

        return current_user

def require_photographer():
    """
    Usage:
        @router.get("/")
        async def list_galleries(user: User = require_photographer()):
            ...
    """
    return Depends(PhotographerChecker())
