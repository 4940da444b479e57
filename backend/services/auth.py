"""
Identity boundary: bearer-token authentication of the current principal.
Gallery services receive the resolved user id as an explicit argument.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import HTTPException, status, Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from dao.user_dao import UserDAO
from models.user import User
from services.db import get_db
from services.security import security_config, SecurityUtils
import logging

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login")

# Verified against when the user does not exist so timing does not reveal it
_DUMMY_HASH = pwd_context.hash("dummy-password-for-timing")

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)

def get_password_hash(password: str) -> str:
    """Hash password using bcrypt."""
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create JWT access token with secure configuration.
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=security_config.jwt_access_token_expire_minutes)

    to_encode.update({
        "exp": expire,
        "iat": now,
        "type": "access"
    })

    return jwt.encode(to_encode, security_config.jwt_secret_key, algorithm=security_config.jwt_algorithm)

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    token: str = Depends(oauth2_scheme)
) -> User:
    """
    Resolve the authenticated user from the bearer token.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token,
            security_config.jwt_secret_key,
            algorithms=[security_config.jwt_algorithm]
        )

        email: str = payload.get("sub")
        token_type: str = payload.get("type")

        if not email or token_type != "access":
            SecurityUtils.log_security_event(
                "invalid_token_format",
                {"reason": "missing_subject_or_wrong_type"},
                client_ip=SecurityUtils.get_client_ip(request),
                level=logging.WARNING
            )
            raise credentials_exception

    except JWTError as e:
        SecurityUtils.log_security_event(
            "jwt_decode_error",
            {"error": str(e)},
            client_ip=SecurityUtils.get_client_ip(request),
            level=logging.WARNING
        )
        raise credentials_exception

    user = await UserDAO(db).get_by_email(email)
    if not user:
        SecurityUtils.log_security_event(
            "token_user_not_found",
            {},
            user_email=email,
            client_ip=SecurityUtils.get_client_ip(request),
            level=logging.WARNING
        )
        raise credentials_exception

    if not user.is_active:
        SecurityUtils.log_security_event(
            "inactive_user_token_use",
            {"user_id": user.id},
            user_email=email,
            client_ip=SecurityUtils.get_client_ip(request),
            level=logging.WARNING
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive"
        )

    return user

async def authenticate_user(db: AsyncSession, email: str, password: str,
                            client_ip: Optional[str] = None) -> Optional[User]:
    """
    Check credentials, logging the outcome as a security event.
    """
    email = SecurityUtils.sanitize_email(email)
    user = await UserDAO(db).get_by_email(email)

    if user is None:
        pwd_context.verify(password, _DUMMY_HASH)
        SecurityUtils.log_security_event(
            "failed_login_user_not_found", {}, user_email=email, client_ip=client_ip,
            level=logging.WARNING
        )
        return None

    if not verify_password(password, user.hashed_password):
        SecurityUtils.log_security_event(
            "failed_login_wrong_password", {"user_id": user.id}, user_email=email, client_ip=client_ip,
            level=logging.WARNING
        )
        return None

    SecurityUtils.log_security_event(
        "successful_login", {"user_id": user.id}, user_email=email, client_ip=client_ip
    )
    return user
