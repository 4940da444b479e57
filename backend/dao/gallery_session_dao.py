"""
Persistence for gallery viewing sessions, one row per (gallery, user) pair.
"""
from datetime import datetime
from typing import Dict, List, Optional
from sqlalchemy import select, delete, desc, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.gallery import GallerySession

class GallerySessionDAO:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, gallery_id: int, user_id: int) -> Optional[GallerySession]:
        result = await self.db.execute(
            select(GallerySession).where(
                GallerySession.gallery_id == gallery_id,
                GallerySession.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, session_id: int) -> Optional[GallerySession]:
        return await self.db.get(GallerySession, session_id)

    async def create(self, gallery_id: int, user_id: int, session_token: str,
                     now: datetime) -> Optional[GallerySession]:
        """
        Insert a new session row.
        Returns None when the (gallery, user) unique constraint rejects the insert.
        """
        record = GallerySession(
            gallery_id=gallery_id,
            user_id=user_id,
            session_token=session_token,
            created_date=now,
            last_access_date=now
        )
        self.db.add(record)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            return None
        return record

    async def touch(self, record: GallerySession, now: datetime) -> GallerySession:
        record.last_access_date = now
        await self.db.commit()
        return record

    async def delete(self, gallery_id: int, user_id: int) -> Optional[GallerySession]:
        record = await self.get(gallery_id, user_id)
        if record is None:
            return None
        await self.db.delete(record)
        await self.db.commit()
        return record

    async def delete_by_id(self, session_id: int) -> Optional[GallerySession]:
        record = await self.get_by_id(session_id)
        if record is None:
            return None
        await self.db.delete(record)
        await self.db.commit()
        return record

    async def delete_all_for_gallery(self, gallery_id: int) -> int:
        result = await self.db.execute(
            delete(GallerySession).where(GallerySession.gallery_id == gallery_id)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def list_for_gallery(self, gallery_id: int, limit: Optional[int] = None) -> List[GallerySession]:
        query = (
            select(GallerySession)
            .where(GallerySession.gallery_id == gallery_id)
            .order_by(desc(GallerySession.created_date), desc(GallerySession.id))
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_all(self) -> int:
        result = await self.db.execute(select(func.count(GallerySession.id)))
        return result.scalar_one()

    async def summarize_by_gallery(self, gallery_ids: List[int]) -> Dict[int, dict]:
        """Session count and latest access per gallery."""
        if not gallery_ids:
            return {}
        result = await self.db.execute(
            select(
                GallerySession.gallery_id,
                func.count(GallerySession.id),
                func.max(GallerySession.last_access_date)
            )
            .where(GallerySession.gallery_id.in_(gallery_ids))
            .group_by(GallerySession.gallery_id)
        )
        return {
            gallery_id: {"session_count": count, "last_access_date": last_access}
            for gallery_id, count, last_access in result.all()
        }
