"""
Security utilities and configuration management.
Centralizes environment-driven settings for tokens, gallery content and grant policy.
"""
import os
import re
import secrets
import string
from typing import Optional
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"

class SecurityConfig:
    """Centralized security configuration with validation."""

    def __init__(self):
        self.jwt_secret_key = self._get_or_generate_jwt_secret()
        self.jwt_algorithm = os.getenv("JWT_ALGORITHM", "HS256")
        self.jwt_access_token_expire_minutes = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

        # Security headers
        self.enable_security_headers = _env_flag("ENABLE_SECURITY_HEADERS", "true")

        # Gallery content and sessions
        self.gallery_content_root = os.path.abspath(os.getenv("GALLERY_CONTENT_ROOT", "./wwwroot"))
        self.gallery_session_active_hours = int(os.getenv("GALLERY_SESSION_ACTIVE_HOURS", "24"))

        # Capabilities applied when a grant is created without explicit flags
        self.grant_default_can_download = _env_flag("GRANT_DEFAULT_CAN_DOWNLOAD", "false")
        self.grant_default_can_proof = _env_flag("GRANT_DEFAULT_CAN_PROOF", "false")
        self.grant_default_can_order = _env_flag("GRANT_DEFAULT_CAN_ORDER", "false")

        self._validate_config()

    def _get_or_generate_jwt_secret(self) -> str:
        """
        Get JWT secret from environment or generate a secure one.
        A generated secret invalidates all tokens on restart.
        """
        secret = os.getenv("JWT_SECRET_KEY")

        if not secret:
            logger.warning("JWT_SECRET_KEY not found in environment. Generating secure random secret.")
            secret = self._generate_secure_secret()

        elif len(secret) < 32:
            logger.error("JWT_SECRET_KEY is too short! Must be at least 32 characters.")
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters long")

        return secret

    def _generate_secure_secret(self, length: int = 64) -> str:
        """Generate cryptographically secure secret key."""
        alphabet = string.ascii_letters + string.digits + "!@#$%^&*()_+-="
        return ''.join(secrets.choice(alphabet) for _ in range(length))

    def _validate_config(self):
        """Warn about settings that are unsafe for production."""
        issues = []

        if self.jwt_algorithm not in ["HS256", "HS384", "HS512"]:
            issues.append(f"Unsupported JWT algorithm: {self.jwt_algorithm}")

        if self.jwt_access_token_expire_minutes > 60:
            issues.append("JWT access token expiration too long (>60 minutes) for production")

        if not os.path.isdir(self.gallery_content_root):
            issues.append(f"Gallery content root does not exist: {self.gallery_content_root}")

        if self.gallery_session_active_hours <= 0:
            issues.append("GALLERY_SESSION_ACTIVE_HOURS must be positive")

        if issues:
            logger.warning("Security configuration issues detected:")
            for issue in issues:
                logger.warning(f"  - {issue}")

class SecurityUtils:
    """Security utility functions shared by services and routers."""

    @staticmethod
    def generate_secure_token(length: int = 32) -> str:
        """Generate cryptographically secure URL-safe token."""
        return secrets.token_urlsafe(length)

    @staticmethod
    def get_client_ip(request) -> str:
        """Extract client IP address handling proxies and load balancers."""
        forwarded_ips = request.headers.get("X-Forwarded-For")
        if forwarded_ips:
            # Take the first IP (original client)
            return forwarded_ips.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"

    @staticmethod
    def sanitize_email(email: str) -> str:
        """Sanitize email address for safe processing."""
        if not email:
            return ""
        return email.lower().strip()

    @staticmethod
    def sanitize_filename(name: Optional[str], max_length: int = 100) -> str:
        """
        Reduce a user-supplied title to a safe download filename stem.
        Returns an empty string when nothing usable remains.
        """
        if not name:
            return ""
        cleaned = re.sub(r'[^A-Za-z0-9 ._-]', '', name)
        cleaned = re.sub(r'\s+', ' ', cleaned).strip(' .')
        return cleaned[:max_length]

    @staticmethod
    def log_security_event(event_type: str, details: dict, user_email: Optional[str] = None,
                          client_ip: Optional[str] = None, level: int = logging.INFO):
        """Log security events for monitoring and analysis."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            "user_email": user_email,
            "client_ip": client_ip,
            "details": details
        }

        logger.log(level, f"SECURITY_EVENT: {log_entry}")

    @staticmethod
    def get_utc_now() -> datetime:
        """Get current UTC datetime."""
        return datetime.now(timezone.utc)

    @staticmethod
    def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
        """Treat naive datetimes (as returned by SQLite) as UTC."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

# Global security configuration instance
security_config = SecurityConfig()
