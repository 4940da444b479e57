"""
Persistence for gallery access grants, one row per (gallery, client) pair.
"""
from datetime import datetime
from typing import List, Optional
from sqlalchemy import select, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from models.gallery import GalleryAccess

logger = logging.getLogger(__name__)

class GalleryAccessDAO:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, gallery_id: int, client_profile_id: int) -> Optional[GalleryAccess]:
        result = await self.db.execute(
            select(GalleryAccess).where(
                GalleryAccess.gallery_id == gallery_id,
                GalleryAccess.client_profile_id == client_profile_id
            )
        )
        return result.scalar_one_or_none()

    async def upsert(self, gallery_id: int, client_profile_id: int, expiry_date: Optional[datetime],
                     can_download: bool, can_proof: bool, can_order: bool,
                     now: datetime) -> GalleryAccess:
        """
        Create the grant for the pair, or reactivate and overwrite the existing one.
        granted_date of an existing grant is left untouched.
        """
        access = await self.get(gallery_id, client_profile_id)
        if access is None:
            access = GalleryAccess(
                gallery_id=gallery_id,
                client_profile_id=client_profile_id,
                granted_date=now,
                expiry_date=expiry_date,
                is_active=True,
                can_download=can_download,
                can_proof=can_proof,
                can_order=can_order
            )
            self.db.add(access)
            try:
                await self.db.commit()
                return access
            except IntegrityError:
                # Another request created the row first; fall through to update it
                await self.db.rollback()
                logger.info(f"Concurrent grant for gallery {gallery_id}, client profile {client_profile_id}")
                access = await self.get(gallery_id, client_profile_id)
                if access is None:
                    raise

        access.is_active = True
        access.expiry_date = expiry_date
        access.can_download = can_download
        access.can_proof = can_proof
        access.can_order = can_order
        await self.db.commit()
        return access

    async def deactivate(self, gallery_id: int, client_profile_id: int) -> bool:
        access = await self.get(gallery_id, client_profile_id)
        if access is None:
            return False
        access.is_active = False
        await self.db.commit()
        return True

    async def list_for_gallery(self, gallery_id: int) -> List[GalleryAccess]:
        result = await self.db.execute(
            select(GalleryAccess)
            .where(GalleryAccess.gallery_id == gallery_id)
            .order_by(desc(GalleryAccess.granted_date), desc(GalleryAccess.id))
        )
        return list(result.scalars().all())

    async def list_for_client(self, client_profile_id: int) -> List[GalleryAccess]:
        result = await self.db.execute(
            select(GalleryAccess)
            .where(GalleryAccess.client_profile_id == client_profile_id)
            .order_by(GalleryAccess.gallery_id)
        )
        return list(result.scalars().all())
