"""
Client-facing gallery endpoints.
Every read of gallery content passes the access validator first; viewing a
gallery ensures the viewing session before photos are returned.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging

from services.db import get_db
from services.auth import get_current_user
from services.access_validator import GalleryAccessValidator
from services.gallery_sessions import GallerySessionManager
from services.gallery_content import (
    GalleryContentResolver, FileServed, AccessDenied, ContentNotFound, ContentStorageError
)
from services.security import SecurityUtils
from models.user import User
from schemas.gallery import (
    AccessDecisionReason, DenialReason, ClientGallery, GalleryPhoto, GalleryView,
    GallerySessionInfo, SessionInfoResponse, MessageResponse
)

router = APIRouter()
logger = logging.getLogger(__name__)

GALLERY_LISTING_PATH = "/api/galleries"

# Gallery-side reasons are reported as "expired" by the session info endpoint
GALLERY_UNAVAILABLE_REASONS = {
    AccessDecisionReason.GALLERY_NOT_FOUND,
    AccessDecisionReason.GALLERY_INACTIVE,
    AccessDecisionReason.GALLERY_EXPIRED,
}

@router.get("", response_model=List[ClientGallery])
async def list_my_galleries(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Galleries the current user holds a valid grant for."""
    validator = GalleryAccessValidator(db)
    accessible = await validator.list_accessible_galleries(current_user.id)
    return [
        ClientGallery(
            gallery_id=item.gallery.id,
            name=item.gallery.name,
            description=item.gallery.description,
            brand_color=item.gallery.brand_color,
            photo_count=item.photo_count,
            expiry_date=item.gallery.expiry_date,
            granted_date=item.grant.granted_date,
            can_download=item.grant.can_download,
            can_proof=item.grant.can_proof,
            can_order=item.grant.can_order
        )
        for item in accessible
    ]

@router.get("/{gallery_id}", response_model=GalleryView)
async def view_gallery(
    gallery_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Gallery photos with the viewer's session token.
    Users without access are redirected to their gallery listing.
    """
    client_ip = SecurityUtils.get_client_ip(request)
    validator = GalleryAccessValidator(db)
    decision = await validator.evaluate_access(gallery_id, current_user.id)

    if not decision.allowed:
        SecurityUtils.log_security_event(
            "gallery_access_denied",
            {"user_id": current_user.id, "gallery_id": gallery_id, "reason": decision.reason.value},
            user_email=current_user.email,
            client_ip=client_ip,
            level=logging.WARNING
        )
        return RedirectResponse(url=GALLERY_LISTING_PATH, status_code=status.HTTP_303_SEE_OTHER)

    gallery = decision.gallery
    gallery_name = gallery.name
    brand_color = gallery.brand_color

    session_token = await GallerySessionManager(db).open_or_refresh(gallery_id, current_user.id)
    photos = await GalleryContentResolver(db).get_viewable_photos(gallery_id)

    return GalleryView(
        gallery_id=gallery_id,
        name=gallery_name,
        brand_color=brand_color,
        session_token=session_token,
        photos=[GalleryPhoto.model_validate(photo) for photo in photos]
    )

@router.get("/{gallery_id}/session", response_model=SessionInfoResponse)
async def get_session_info(
    gallery_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Gallery branding plus the caller's session timestamps, if a session exists."""
    decision = await GalleryAccessValidator(db).evaluate_access(gallery_id, current_user.id)
    if not decision.allowed:
        message = "Gallery expired" if decision.reason in GALLERY_UNAVAILABLE_REASONS else "No access to gallery"
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"success": False, "message": message}
        )

    gallery = decision.gallery
    session = await GallerySessionManager(db).get_session_info(gallery_id, current_user.id)

    return SessionInfoResponse(
        success=True,
        data=GallerySessionInfo(
            gallery_id=gallery.id,
            name=gallery.name,
            description=gallery.description,
            brand_color=gallery.brand_color,
            logo_path=gallery.logo_path,
            expiry_date=gallery.expiry_date,
            created_date=session.created_date if session else None,
            last_access_date=session.last_access_date if session else None
        )
    )

@router.post("/{gallery_id}/session/end", response_model=MessageResponse)
async def end_session(
    gallery_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """End the caller's own viewing session for a gallery."""
    ended = await GallerySessionManager(db).end_session(gallery_id, current_user.id)
    if not ended:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"success": False, "message": "Session not found"}
        )
    return MessageResponse(success=True, message="Session ended successfully")

@router.get("/{gallery_id}/photos/{photo_id}/download")
async def download_photo(
    gallery_id: int,
    photo_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Stream a full resolution photo.
    401 without gallery access or on a path escape, 403 without download
    permission, 404 when the photo is not in the gallery or its file is missing.
    """
    resolver = GalleryContentResolver(db)
    try:
        result = await resolver.retrieve_original_file(
            photo_id, gallery_id, current_user.id,
            client_ip=SecurityUtils.get_client_ip(request)
        )
    except ContentStorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error"
        )

    if isinstance(result, AccessDenied):
        if result.reason == DenialReason.DOWNLOAD_NOT_PERMITTED:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Download not permitted")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    if isinstance(result, ContentNotFound):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo not found")

    served: FileServed = result
    return StreamingResponse(
        served.iter_chunks(),
        media_type=served.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{served.filename}"',
            "Content-Length": str(served.size)
        }
    )
