from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from sqlalchemy import text
import logging
from api import user, galleries, gallery_admin
from middleware.security import SecurityHeadersMiddleware, SecurityLoggingMiddleware
from services.db import get_db
from services.security import security_config, SecurityUtils

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the effective configuration on startup."""
    logger.info("Starting Studio Gallery API")
    logger.info(f"  - Security headers: {security_config.enable_security_headers}")
    logger.info(f"  - JWT algorithm: {security_config.jwt_algorithm}")
    logger.info(f"  - Token expiration: {security_config.jwt_access_token_expire_minutes} minutes")
    logger.info(f"  - Gallery content root: {security_config.gallery_content_root}")
    logger.info(f"  - Session activity window: {security_config.gallery_session_active_hours} hours")

    yield

    logger.info("Studio Gallery API shutdown complete")

app = FastAPI(
    title="Studio Gallery API",
    description="Client gallery access, viewing sessions and photo delivery for a photography studio",
    version="1.0.0",
    lifespan=lifespan
)

# Last added is executed first
app.add_middleware(SecurityLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

app.include_router(user.router, prefix="/api/users", tags=["users"])
app.include_router(galleries.router, prefix="/api/galleries", tags=["galleries"])
app.include_router(gallery_admin.router, prefix="/api/admin/galleries", tags=["gallery-admin"])

@app.get("/")
def root():
    return {
        "message": "Studio Gallery API",
        "version": "1.0.0",
        "docs": "/docs",
        "status": "operational"
    }

@app.get("/health")
def health_check():
    """Health check endpoint for load balancers and monitoring."""
    return {
        "status": "healthy",
        "timestamp": SecurityUtils.get_utc_now().isoformat(),
        "version": "1.0.0"
    }

@app.get("/health/ready")
async def readiness_check():
    """Readiness probe; verifies the database answers."""
    try:
        async for db in get_db():
            await db.execute(text("SELECT 1"))
            break
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "error": "Database connection failed"}
        )

    return {"status": "ready", "checks": {"database": "healthy"}}

@app.get("/health/live")
def liveness_check():
    return {"status": "alive"}

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Validation errors are logged in full but answered generically."""
    SecurityUtils.log_security_event(
        "request_validation_error",
        {
            "path": request.url.path,
            "method": request.method,
            "errors": [error.get("msg") for error in exc.errors()]
        },
        client_ip=SecurityUtils.get_client_ip(request)
    )

    return JSONResponse(
        status_code=422,
        content={"error": "Invalid request format", "details": "Please check your request data"}
    )

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code in [400, 401, 403, 404]:
        SecurityUtils.log_security_event(
            "http_exception",
            {
                "status_code": exc.status_code,
                "path": request.url.path,
                "method": request.method
            },
            client_ip=SecurityUtils.get_client_ip(request)
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail if hasattr(exc, 'detail') else "Request failed"},
        headers=getattr(exc, "headers", None)
    )

@app.exception_handler(Exception)
async def internal_server_error_handler(request: Request, exc: Exception):
    """Unhandled faults never leak paths or messages to the client."""
    SecurityUtils.log_security_event(
        "internal_server_error",
        {
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__
        },
        client_ip=SecurityUtils.get_client_ip(request),
        level=logging.ERROR
    )

    logger.error(f"Internal server error: {exc}")

    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )
