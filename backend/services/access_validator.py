"""
Gallery access validation.
The single gate consulted before any gallery content is read: combines the
client's grant, the gallery's own validity window and the current time.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from dao.user_dao import ClientProfileDAO
from dao.gallery_dao import GalleryDAO
from dao.gallery_access_dao import GalleryAccessDAO
from models.gallery import Gallery, GalleryAccess
from schemas.gallery import AccessDecisionReason
from services.security import SecurityUtils

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class AccessDecision:
    """Outcome of an access check, with the rows that produced it."""
    allowed: bool
    reason: AccessDecisionReason
    grant: Optional[GalleryAccess] = None
    gallery: Optional[Gallery] = None

@dataclass(frozen=True)
class AccessibleGallery:
    gallery: Gallery
    grant: GalleryAccess
    photo_count: int

def decide_access(grant: Optional[GalleryAccess], gallery: Optional[Gallery],
                  now: datetime) -> AccessDecision:
    """
    Pure access decision. Grant validity and gallery liveness are both required;
    neither compensates for the other.
    """
    if grant is None:
        return AccessDecision(False, AccessDecisionReason.NO_GRANT, None, gallery)
    if not grant.is_active:
        return AccessDecision(False, AccessDecisionReason.GRANT_INACTIVE, grant, gallery)
    if not grant.is_valid(now):
        return AccessDecision(False, AccessDecisionReason.GRANT_EXPIRED, grant, gallery)
    if gallery is None:
        return AccessDecision(False, AccessDecisionReason.GALLERY_NOT_FOUND, grant, None)
    if not gallery.is_active:
        return AccessDecision(False, AccessDecisionReason.GALLERY_INACTIVE, grant, gallery)
    if not gallery.is_live(now):
        return AccessDecision(False, AccessDecisionReason.GALLERY_EXPIRED, grant, gallery)
    return AccessDecision(True, AccessDecisionReason.GRANTED, grant, gallery)

class GalleryAccessValidator:
    """
    Read-only access checks for (gallery, user) pairs.
    Absent rows produce a denial, never an exception; only storage faults propagate.
    """

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = SecurityUtils.get_utc_now):
        self.db = db
        self.clock = clock
        self.clients = ClientProfileDAO(db)
        self.galleries = GalleryDAO(db)
        self.grants = GalleryAccessDAO(db)

    async def evaluate_access(self, gallery_id: int, user_id: int) -> AccessDecision:
        """
        Evaluate access with the reason for the outcome.

        Args:
            gallery_id: Gallery being requested
            user_id: Authenticated principal

        Returns:
            AccessDecision; allowed only when the grant is valid and the gallery is live
        """
        client = await self.clients.get_by_user_id(user_id)
        if client is None:
            return AccessDecision(False, AccessDecisionReason.NO_CLIENT_PROFILE)

        grant = await self.grants.get(gallery_id, client.id)
        gallery = await self.galleries.get_by_id(gallery_id)
        return decide_access(grant, gallery, self.clock())

    async def validate_access(self, gallery_id: int, user_id: int) -> bool:
        decision = await self.evaluate_access(gallery_id, user_id)
        return decision.allowed

    async def get_grant(self, gallery_id: int, user_id: int) -> Optional[GalleryAccess]:
        client = await self.clients.get_by_user_id(user_id)
        if client is None:
            return None
        return await self.grants.get(gallery_id, client.id)

    async def can_download(self, gallery_id: int, user_id: int) -> bool:
        """Capability check; a missing grant is a default deny."""
        grant = await self.get_grant(gallery_id, user_id)
        return bool(grant is not None and grant.can_download)

    async def can_proof(self, gallery_id: int, user_id: int) -> bool:
        grant = await self.get_grant(gallery_id, user_id)
        return bool(grant is not None and grant.can_proof)

    async def can_order(self, gallery_id: int, user_id: int) -> bool:
        grant = await self.get_grant(gallery_id, user_id)
        return bool(grant is not None and grant.can_order)

    async def list_accessible_galleries(self, user_id: int) -> List[AccessibleGallery]:
        """
        Galleries the user may currently view, soonest expiry first.
        A user without a client profile sees nothing.
        """
        client = await self.clients.get_by_user_id(user_id)
        if client is None:
            logger.warning(f"No client profile found for user: {user_id}")
            return []

        now = self.clock()
        grants = await self.grants.list_for_client(client.id)
        galleries = await self.galleries.get_many(grant.gallery_id for grant in grants)

        allowed = []
        for grant in grants:
            gallery = galleries.get(grant.gallery_id)
            if decide_access(grant, gallery, now).allowed:
                allowed.append((gallery, grant))

        photo_counts = await self.galleries.count_photos_by_gallery(g.id for g, _ in allowed)
        allowed.sort(key=lambda item: (SecurityUtils.ensure_utc(item[0].expiry_date), item[0].id))
        return [
            AccessibleGallery(gallery=gallery, grant=grant, photo_count=photo_counts.get(gallery.id, 0))
            for gallery, grant in allowed
        ]
