"""
Operator gallery management endpoints.
All routes require a studio staff account.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from services.db import get_db
from services.authorization import require_photographer
from services.gallery_service import GalleryService, GalleryNotFoundError, ClientProfileNotFoundError
from services.gallery_sessions import GallerySessionManager
from services.security import SecurityUtils
from models.user import User
from schemas.gallery import (
    GalleryCreate, GalleryUpdate, GalleryStatusUpdate, GallerySummary, GalleryDetail,
    AccessGrantRequest, AccessGrantOut, AlbumIdsRequest, AlbumSelection, GalleryStats,
    GallerySessionSummary, MessageResponse, EndAllSessionsResponse, AccessUrlResponse
)

router = APIRouter()
logger = logging.getLogger(__name__)

def _gallery_not_found():
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Gallery not found")

# ==========================================
# GALLERIES
# ==========================================

@router.get("", response_model=List[GallerySummary])
async def list_galleries(db: AsyncSession = Depends(get_db), current_user: User = require_photographer()):
    return await GalleryService(db).list_galleries()

@router.get("/stats", response_model=GalleryStats)
async def gallery_stats(db: AsyncSession = Depends(get_db), current_user: User = require_photographer()):
    return await GalleryService(db).get_gallery_stats()

@router.get("/albums", response_model=List[AlbumSelection])
async def available_albums(
    gallery_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = require_photographer()
):
    """Albums that can be attached to a gallery, flagged when already attached."""
    return await GalleryService(db).get_available_albums(gallery_id)

@router.delete("/albums/{album_id}", response_model=MessageResponse)
async def delete_album(album_id: int, db: AsyncSession = Depends(get_db),
                       current_user: User = require_photographer()):
    """Delete an album and every photo in it."""
    if not await GalleryService(db).delete_album(album_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Album not found")
    return MessageResponse(success=True, message="Album deleted")

@router.post("", response_model=GalleryDetail, status_code=status.HTTP_201_CREATED)
async def create_gallery(
    data: GalleryCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = require_photographer()
):
    operator_email = current_user.email
    service = GalleryService(db)
    try:
        gallery = await service.create_gallery(data)
    except ClientProfileNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    SecurityUtils.log_security_event(
        "gallery_created",
        {"gallery_id": gallery.id, "client_profile_ids": data.client_profile_ids},
        user_email=operator_email,
        client_ip=SecurityUtils.get_client_ip(request)
    )
    return await service.get_gallery_details(gallery.id)

@router.get("/{gallery_id}", response_model=GalleryDetail)
async def gallery_details(gallery_id: int, db: AsyncSession = Depends(get_db),
                          current_user: User = require_photographer()):
    detail = await GalleryService(db).get_gallery_details(gallery_id)
    if detail is None:
        raise _gallery_not_found()
    return detail

@router.put("/{gallery_id}", response_model=GalleryDetail)
async def update_gallery(
    gallery_id: int,
    data: GalleryUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = require_photographer()
):
    service = GalleryService(db)
    try:
        await service.update_gallery(gallery_id, data)
    except GalleryNotFoundError:
        raise _gallery_not_found()
    return await service.get_gallery_details(gallery_id)

@router.delete("/{gallery_id}", response_model=MessageResponse)
async def delete_gallery(
    gallery_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = require_photographer()
):
    if not await GalleryService(db).delete_gallery(gallery_id):
        raise _gallery_not_found()

    SecurityUtils.log_security_event(
        "gallery_deleted",
        {"gallery_id": gallery_id},
        user_email=current_user.email,
        client_ip=SecurityUtils.get_client_ip(request)
    )
    return MessageResponse(success=True, message="Gallery deleted")

@router.patch("/{gallery_id}/status", response_model=MessageResponse)
async def toggle_gallery_status(
    gallery_id: int,
    data: GalleryStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = require_photographer()
):
    if not await GalleryService(db).toggle_gallery_status(gallery_id, data.is_active):
        raise _gallery_not_found()
    return MessageResponse(success=True, message="Gallery activated" if data.is_active else "Gallery deactivated")

@router.get("/{gallery_id}/access-url", response_model=AccessUrlResponse)
async def gallery_access_url(
    gallery_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = require_photographer()
):
    service = GalleryService(db)
    if await service.get_gallery(gallery_id) is None:
        raise _gallery_not_found()
    return AccessUrlResponse(
        gallery_id=gallery_id,
        url=service.get_gallery_access_url(gallery_id, str(request.base_url))
    )

# ==========================================
# ALBUM LINKS
# ==========================================

@router.post("/{gallery_id}/albums", response_model=MessageResponse)
async def add_albums(gallery_id: int, data: AlbumIdsRequest, db: AsyncSession = Depends(get_db),
                     current_user: User = require_photographer()):
    if not await GalleryService(db).add_albums_to_gallery(gallery_id, data.album_ids):
        raise _gallery_not_found()
    return MessageResponse(success=True, message="Albums added")

@router.post("/{gallery_id}/albums/remove", response_model=MessageResponse)
async def remove_albums(gallery_id: int, data: AlbumIdsRequest, db: AsyncSession = Depends(get_db),
                        current_user: User = require_photographer()):
    if not await GalleryService(db).remove_albums_from_gallery(gallery_id, data.album_ids):
        raise _gallery_not_found()
    return MessageResponse(success=True, message="Albums removed")

# ==========================================
# ACCESS GRANTS
# ==========================================

@router.get("/{gallery_id}/access", response_model=List[AccessGrantOut])
async def list_gallery_access(gallery_id: int, db: AsyncSession = Depends(get_db),
                              current_user: User = require_photographer()):
    return await GalleryService(db).get_gallery_accesses(gallery_id)

@router.post("/{gallery_id}/access", response_model=AccessGrantOut)
async def grant_gallery_access(
    gallery_id: int,
    data: AccessGrantRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = require_photographer()
):
    """Grant or re-grant a client access to the gallery."""
    # Read before the grant: a conflicting insert rolls back and expires the user row
    operator_email = current_user.email
    try:
        access = await GalleryService(db).grant_access(
            gallery_id,
            data.client_profile_id,
            expiry_date=data.expiry_date,
            can_download=data.can_download,
            can_proof=data.can_proof,
            can_order=data.can_order
        )
    except GalleryNotFoundError:
        raise _gallery_not_found()
    except ClientProfileNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client profile not found")

    SecurityUtils.log_security_event(
        "gallery_access_granted",
        {
            "gallery_id": gallery_id,
            "client_profile_id": data.client_profile_id,
            "can_download": access.can_download,
            "expiry_date": access.expiry_date.isoformat() if access.expiry_date else None
        },
        user_email=operator_email,
        client_ip=SecurityUtils.get_client_ip(request)
    )
    return access

@router.delete("/{gallery_id}/access/{client_profile_id}", response_model=MessageResponse)
async def revoke_gallery_access(
    gallery_id: int,
    client_profile_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = require_photographer()
):
    if not await GalleryService(db).revoke_access(gallery_id, client_profile_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Access grant not found")

    SecurityUtils.log_security_event(
        "gallery_access_revoked",
        {"gallery_id": gallery_id, "client_profile_id": client_profile_id},
        user_email=current_user.email,
        client_ip=SecurityUtils.get_client_ip(request)
    )
    return MessageResponse(success=True, message="Access revoked")

# ==========================================
# SESSIONS
# ==========================================

@router.get("/{gallery_id}/sessions", response_model=List[GallerySessionSummary])
async def list_gallery_sessions(gallery_id: int, db: AsyncSession = Depends(get_db),
                                current_user: User = require_photographer()):
    summaries = await GallerySessionManager(db).list_sessions(gallery_id)
    return [
        GallerySessionSummary(
            id=item.session.id,
            user_id=item.session.user_id,
            session_token=item.session.session_token,
            created_date=item.session.created_date,
            last_access_date=item.session.last_access_date,
            is_recent=item.is_recent
        )
        for item in summaries
    ]

@router.delete("/{gallery_id}/sessions", response_model=EndAllSessionsResponse)
async def end_all_gallery_sessions(gallery_id: int, db: AsyncSession = Depends(get_db),
                                   current_user: User = require_photographer()):
    ended = await GallerySessionManager(db).end_all_sessions(gallery_id)
    return EndAllSessionsResponse(success=True, ended=ended)

@router.delete("/{gallery_id}/sessions/{session_id}", response_model=MessageResponse)
async def end_gallery_session(gallery_id: int, session_id: int, db: AsyncSession = Depends(get_db),
                              current_user: User = require_photographer()):
    manager = GallerySessionManager(db)
    if not await manager.end_session_by_id(session_id, gallery_id=gallery_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return MessageResponse(success=True, message="Session ended successfully")
