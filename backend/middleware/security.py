"""
Security middleware for the gallery API.
Adds response hardening headers and logs failed requests as security events.
"""
import time
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import logging

from services.security import security_config, SecurityUtils

logger = logging.getLogger(__name__)

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to all responses.
    Photo downloads are attachments, so the same policy applies to them.
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.security_headers = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
            "Content-Security-Policy": (
                "default-src 'self'; "
                "img-src 'self' data:; "
                "style-src 'self' 'unsafe-inline'; "
                "frame-ancestors 'none';"
            ),
            "Referrer-Policy": "strict-origin-when-cross-origin",
            # Session tokens and photo listings must not be cached by intermediaries
            "Cache-Control": "no-store",
        }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        if security_config.enable_security_headers:
            for header, value in self.security_headers.items():
                response.headers.setdefault(header, value)

            if "Server" in response.headers:
                del response.headers["Server"]

        return response

class SecurityLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every 4xx/5xx response with timing, never with credentials.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        client_ip = SecurityUtils.get_client_ip(request)

        response = await call_next(request)
        process_time = time.time() - start_time

        if response.status_code >= 400:
            SecurityUtils.log_security_event(
                "http_error_response",
                {
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "process_time": round(process_time, 3),
                    "user_agent": request.headers.get("user-agent", "")
                },
                client_ip=client_ip,
                level=logging.WARNING if response.status_code < 500 else logging.ERROR
            )

        response.headers["X-Process-Time"] = str(round(process_time, 3))
        return response
