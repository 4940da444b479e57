from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession
from schemas.user import UserOut, Token
from services.db import get_db
from models.user import User
from services.auth import create_access_token, get_current_user, authenticate_user
from services.security import SecurityUtils
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/login", response_model=Token)
async def login(request: Request, form_data: OAuth2PasswordRequestForm = Depends(),
                db: AsyncSession = Depends(get_db)):
    """Exchange credentials for a bearer token."""
    client_ip = SecurityUtils.get_client_ip(request)

    user = await authenticate_user(db, form_data.username, form_data.password, client_ip)
    if not user:
        # Generic error message to avoid information disclosure
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    if not user.is_active:
        SecurityUtils.log_security_event(
            "login_attempt_inactive_user",
            {"user_id": user.id},
            user_email=user.email,
            client_ip=client_ip,
            level=logging.WARNING
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive"
        )

    access_token = create_access_token(data={"sub": user.email})
    return {"access_token": access_token, "token_type": "bearer"}

@router.get("/me", response_model=UserOut)
async def get_me(current_user: User = Depends(get_current_user)):
    """Current authenticated user."""
    return current_user
