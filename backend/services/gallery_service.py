"""
Gallery management for studio operators.
Creates and edits galleries, manages album links and client grants, and
reports per-gallery session activity and overall statistics.
"""
from datetime import datetime
from typing import Callable, Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from dao.gallery_dao import GalleryDAO
from dao.gallery_access_dao import GalleryAccessDAO
from dao.gallery_session_dao import GallerySessionDAO
from dao.user_dao import ClientProfileDAO
from models.gallery import Gallery, GalleryAccess
from schemas.gallery import (
    GalleryCreate, GalleryUpdate, GallerySummary, GalleryDetail, GalleryPhoto,
    GallerySessionSummary, AlbumSelection, GalleryStats
)
from services.gallery_sessions import GallerySessionManager
from services.security import SecurityUtils, security_config

logger = logging.getLogger(__name__)

RECENT_SESSIONS_LIMIT = 10

class GalleryNotFoundError(Exception):
    """Raised when an operation requires a gallery that does not exist."""
    pass

class ClientProfileNotFoundError(Exception):
    """Raised when a grant names a client profile that does not exist."""
    pass

class GalleryService:
    """
    Operator-facing gallery management.
    """

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = SecurityUtils.get_utc_now):
        self.db = db
        self.clock = clock
        self.galleries = GalleryDAO(db)
        self.grants = GalleryAccessDAO(db)
        self.sessions = GallerySessionDAO(db)
        self.clients = ClientProfileDAO(db)
        self.session_manager = GallerySessionManager(db, clock=clock)

    # ==========================================
    # GALLERY CRUD
    # ==========================================

    async def get_gallery(self, gallery_id: int) -> Optional[Gallery]:
        return await self.galleries.get_by_id(gallery_id)

    async def list_galleries(self) -> List[GallerySummary]:
        galleries = await self.galleries.list_all()
        ids = [gallery.id for gallery in galleries]
        photo_counts = await self.galleries.count_photos_by_gallery(ids)
        activity = await self.sessions.summarize_by_gallery(ids)

        summaries = []
        for gallery in galleries:
            stats = activity.get(gallery.id, {})
            summaries.append(GallerySummary(
                id=gallery.id,
                name=gallery.name,
                description=gallery.description,
                created_date=gallery.created_date,
                expiry_date=gallery.expiry_date,
                is_active=gallery.is_active,
                photo_count=photo_counts.get(gallery.id, 0),
                session_count=stats.get("session_count", 0),
                last_access_date=stats.get("last_access_date")
            ))
        return summaries

    async def get_gallery_details(self, gallery_id: int) -> Optional[GalleryDetail]:
        gallery = await self.galleries.get_by_id(gallery_id)
        if gallery is None:
            return None

        photos = await self.galleries.list_photos(gallery_id)
        album_ids = await self.galleries.get_album_ids(gallery_id)
        sessions = await self.session_manager.list_sessions(gallery_id)
        last_access = max(
            (SecurityUtils.ensure_utc(item.session.last_access_date) for item in sessions),
            default=None
        )

        return GalleryDetail(
            id=gallery.id,
            name=gallery.name,
            description=gallery.description,
            created_date=gallery.created_date,
            expiry_date=gallery.expiry_date,
            is_active=gallery.is_active,
            brand_color=gallery.brand_color,
            logo_path=gallery.logo_path,
            photo_count=len(photos),
            photos=[GalleryPhoto.model_validate(photo) for photo in photos],
            album_ids=album_ids,
            total_sessions=len(sessions),
            active_sessions=sum(1 for item in sessions if item.is_recent),
            last_access_date=last_access,
            recent_sessions=[
                GallerySessionSummary(
                    id=item.session.id,
                    user_id=item.session.user_id,
                    session_token=item.session.session_token,
                    created_date=item.session.created_date,
                    last_access_date=item.session.last_access_date,
                    is_recent=item.is_recent
                )
                for item in sessions[:RECENT_SESSIONS_LIMIT]
            ]
        )

    async def create_gallery(self, data: GalleryCreate) -> Gallery:
        """Create a gallery, attach the selected albums and grant the selected clients."""
        for client_profile_id in data.client_profile_ids:
            if await self.clients.get_by_id(client_profile_id) is None:
                raise ClientProfileNotFoundError(f"Client profile not found: {client_profile_id}")

        gallery = Gallery(
            name=data.name,
            description=data.description,
            created_date=self.clock(),
            expiry_date=data.expiry_date,
            is_active=data.is_active,
            brand_color=data.brand_color,
            logo_path=None
        )
        gallery = await self.galleries.create(gallery)
        # A grant retried after a conflicting insert rolls back and expires loaded rows
        gallery_id, gallery_name = gallery.id, gallery.name

        if data.album_ids:
            await self.galleries.link_albums(gallery_id, data.album_ids)

        for client_profile_id in data.client_profile_ids:
            await self.grant_access(gallery_id, client_profile_id)

        logger.info(f"Gallery created: {gallery_name} (ID: {gallery_id})")
        return await self.galleries.get_by_id(gallery_id)

    async def update_gallery(self, gallery_id: int, data: GalleryUpdate) -> Gallery:
        gallery = await self.galleries.get_by_id(gallery_id)
        if gallery is None:
            raise GalleryNotFoundError(f"Gallery not found: {gallery_id}")

        gallery.name = data.name
        gallery.description = data.description
        gallery.expiry_date = data.expiry_date
        gallery.brand_color = data.brand_color
        if data.is_active is not None:
            gallery.is_active = data.is_active
        await self.galleries.save()

        current = set(await self.galleries.get_album_ids(gallery_id))
        wanted = set(data.album_ids)
        if current - wanted:
            await self.galleries.unlink_albums(gallery_id, current - wanted)
        if wanted - current:
            await self.galleries.link_albums(gallery_id, wanted - current)

        logger.info(f"Gallery updated: {gallery.name} (ID: {gallery.id})")
        return gallery

    async def delete_gallery(self, gallery_id: int) -> bool:
        gallery = await self.galleries.get_by_id(gallery_id)
        if gallery is None:
            return False
        name = gallery.name
        await self.galleries.delete(gallery)
        logger.info(f"Gallery deleted: {name} (ID: {gallery_id})")
        return True

    async def toggle_gallery_status(self, gallery_id: int, is_active: bool) -> bool:
        gallery = await self.galleries.get_by_id(gallery_id)
        if gallery is None:
            return False
        gallery.is_active = is_active
        await self.galleries.save()
        logger.info(f"Gallery {'activated' if is_active else 'deactivated'}: {gallery.name} (ID: {gallery_id})")
        return True

    # ==========================================
    # ACCESS GRANTS
    # ==========================================

    async def grant_access(self, gallery_id: int, client_profile_id: int,
                           expiry_date: Optional[datetime] = None,
                           can_download: Optional[bool] = None,
                           can_proof: Optional[bool] = None,
                           can_order: Optional[bool] = None) -> GalleryAccess:
        """
        Grant a client access to a gallery, reactivating any earlier grant for the pair.
        Capabilities left as None take the configured defaults.
        """
        if await self.galleries.get_by_id(gallery_id) is None:
            raise GalleryNotFoundError(f"Gallery not found: {gallery_id}")
        if await self.clients.get_by_id(client_profile_id) is None:
            raise ClientProfileNotFoundError(f"Client profile not found: {client_profile_id}")

        access = await self.grants.upsert(
            gallery_id,
            client_profile_id,
            expiry_date=expiry_date,
            can_download=security_config.grant_default_can_download if can_download is None else can_download,
            can_proof=security_config.grant_default_can_proof if can_proof is None else can_proof,
            can_order=security_config.grant_default_can_order if can_order is None else can_order,
            now=self.clock()
        )
        logger.info(f"Access granted for gallery {gallery_id} to client profile {client_profile_id}")
        return access

    async def revoke_access(self, gallery_id: int, client_profile_id: int) -> bool:
        revoked = await self.grants.deactivate(gallery_id, client_profile_id)
        if revoked:
            logger.info(f"Access revoked for gallery {gallery_id} from client profile {client_profile_id}")
        return revoked

    async def get_gallery_accesses(self, gallery_id: int) -> List[GalleryAccess]:
        return await self.grants.list_for_gallery(gallery_id)

    # ==========================================
    # ALBUMS
    # ==========================================

    async def add_albums_to_gallery(self, gallery_id: int, album_ids: Iterable[int]) -> bool:
        if await self.galleries.get_by_id(gallery_id) is None:
            return False
        added = await self.galleries.link_albums(gallery_id, album_ids)
        logger.info(f"Added {added} albums to gallery ID: {gallery_id}")
        return True

    async def remove_albums_from_gallery(self, gallery_id: int, album_ids: Iterable[int]) -> bool:
        if await self.galleries.get_by_id(gallery_id) is None:
            return False
        removed = await self.galleries.unlink_albums(gallery_id, album_ids)
        logger.info(f"Removed {removed} albums from gallery ID: {gallery_id}")
        return True

    async def get_available_albums(self, current_gallery_id: Optional[int] = None) -> List[AlbumSelection]:
        albums = await self.galleries.list_albums()
        photo_counts = await self.galleries.album_photo_counts()
        selected = set()
        if current_gallery_id is not None:
            selected = set(await self.galleries.get_album_ids(current_gallery_id))

        return [
            AlbumSelection(
                id=album.id,
                name=album.name,
                description=album.description,
                photo_count=photo_counts.get(album.id, 0),
                is_selected=album.id in selected
            )
            for album in albums
        ]

    async def delete_album(self, album_id: int) -> bool:
        deleted = await self.galleries.delete_album(album_id)
        if deleted:
            logger.info(f"Album deleted with its photos: {album_id}")
        return deleted

    # ==========================================
    # ANALYTICS
    # ==========================================

    async def get_gallery_stats(self) -> GalleryStats:
        now = self.clock()
        galleries = await self.galleries.list_all()
        return GalleryStats(
            total_galleries=len(galleries),
            active_galleries=sum(1 for gallery in galleries if gallery.is_live(now)),
            expired_galleries=sum(1 for gallery in galleries if gallery.is_expired(now)),
            total_sessions=await self.sessions.count_all(),
            total_photos=await self.galleries.count_photos_in_galleries()
        )

    def get_gallery_access_url(self, gallery_id: int, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/galleries/{gallery_id}"
