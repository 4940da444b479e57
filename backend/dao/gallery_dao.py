"""
Gallery, album and photo queries.
Each traversal between galleries, albums and photos is an explicit query
returning a flat, ordered list.
"""
from typing import Dict, Iterable, List, Optional
from sqlalchemy import select, delete, desc, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from models.gallery import Gallery, GalleryAccess, GallerySession, gallery_albums
from models.photo import Album, Photo

class GalleryDAO:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ==========================================
    # GALLERIES
    # ==========================================

    async def get_by_id(self, gallery_id: int) -> Optional[Gallery]:
        return await self.db.get(Gallery, gallery_id)

    async def get_many(self, gallery_ids: Iterable[int]) -> Dict[int, Gallery]:
        ids = list(set(gallery_ids))
        if not ids:
            return {}
        result = await self.db.execute(select(Gallery).where(Gallery.id.in_(ids)))
        return {gallery.id: gallery for gallery in result.scalars().all()}

    async def list_all(self) -> List[Gallery]:
        result = await self.db.execute(
            select(Gallery).order_by(desc(Gallery.created_date), desc(Gallery.id))
        )
        return list(result.scalars().all())

    async def create(self, gallery: Gallery) -> Gallery:
        self.db.add(gallery)
        await self.db.commit()
        await self.db.refresh(gallery)
        return gallery

    async def save(self):
        await self.db.commit()

    async def delete(self, gallery: Gallery):
        """Delete a gallery with its sessions, grants and album links. Albums are kept."""
        gallery_id = gallery.id
        await self.db.execute(delete(GallerySession).where(GallerySession.gallery_id == gallery_id))
        await self.db.execute(delete(GalleryAccess).where(GalleryAccess.gallery_id == gallery_id))
        await self.db.execute(delete(gallery_albums).where(gallery_albums.c.gallery_id == gallery_id))
        await self.db.delete(gallery)
        await self.db.commit()

    # ==========================================
    # GALLERY <-> ALBUM ASSOCIATION
    # ==========================================

    async def get_album_ids(self, gallery_id: int) -> List[int]:
        result = await self.db.execute(
            select(gallery_albums.c.album_id)
            .where(gallery_albums.c.gallery_id == gallery_id)
            .order_by(gallery_albums.c.album_id)
        )
        return list(result.scalars().all())

    async def link_albums(self, gallery_id: int, album_ids: Iterable[int]) -> int:
        """Attach existing albums not yet linked. Returns how many links were added."""
        existing = set(await self.get_album_ids(gallery_id))
        wanted = set(await self.existing_album_ids(album_ids)) - existing
        if wanted:
            await self.db.execute(
                gallery_albums.insert(),
                [{"gallery_id": gallery_id, "album_id": album_id} for album_id in sorted(wanted)]
            )
        await self.db.commit()
        return len(wanted)

    async def unlink_albums(self, gallery_id: int, album_ids: Iterable[int]) -> int:
        ids = list(set(album_ids))
        if not ids:
            return 0
        result = await self.db.execute(
            delete(gallery_albums).where(
                and_(gallery_albums.c.gallery_id == gallery_id, gallery_albums.c.album_id.in_(ids))
            )
        )
        await self.db.commit()
        return result.rowcount or 0

    # ==========================================
    # ALBUMS
    # ==========================================

    async def existing_album_ids(self, album_ids: Iterable[int]) -> List[int]:
        ids = list(set(album_ids))
        if not ids:
            return []
        result = await self.db.execute(select(Album.id).where(Album.id.in_(ids)))
        return list(result.scalars().all())

    async def list_albums(self) -> List[Album]:
        result = await self.db.execute(select(Album).order_by(Album.created_date, Album.name, Album.id))
        return list(result.scalars().all())

    async def album_photo_counts(self) -> Dict[int, int]:
        result = await self.db.execute(
            select(Photo.album_id, func.count(Photo.id)).group_by(Photo.album_id)
        )
        return {album_id: count for album_id, count in result.all()}

    async def delete_album(self, album_id: int) -> bool:
        """Delete an album together with the photos it owns."""
        album = await self.db.get(Album, album_id)
        if album is None:
            return False
        await self.db.execute(delete(Photo).where(Photo.album_id == album_id))
        await self.db.execute(delete(gallery_albums).where(gallery_albums.c.album_id == album_id))
        await self.db.delete(album)
        await self.db.commit()
        return True

    # ==========================================
    # PHOTOS
    # ==========================================

    async def list_photos(self, gallery_id: int) -> List[Photo]:
        """Photos of every album attached to the gallery, by display order then id."""
        result = await self.db.execute(
            select(Photo)
            .join(gallery_albums, gallery_albums.c.album_id == Photo.album_id)
            .where(gallery_albums.c.gallery_id == gallery_id)
            .order_by(Photo.display_order, Photo.id)
        )
        return list(result.scalars().unique().all())

    async def get_photo_in_gallery(self, photo_id: int, gallery_id: int) -> Optional[Photo]:
        """The photo, only if its album is attached to the gallery."""
        result = await self.db.execute(
            select(Photo)
            .join(gallery_albums, gallery_albums.c.album_id == Photo.album_id)
            .where(and_(Photo.id == photo_id, gallery_albums.c.gallery_id == gallery_id))
        )
        return result.scalars().first()

    async def count_photos_by_gallery(self, gallery_ids: Iterable[int]) -> Dict[int, int]:
        ids = list(set(gallery_ids))
        if not ids:
            return {}
        result = await self.db.execute(
            select(gallery_albums.c.gallery_id, func.count(func.distinct(Photo.id)))
            .select_from(gallery_albums)
            .join(Photo, Photo.album_id == gallery_albums.c.album_id)
            .where(gallery_albums.c.gallery_id.in_(ids))
            .group_by(gallery_albums.c.gallery_id)
        )
        counts = {gallery_id: count for gallery_id, count in result.all()}
        return {gallery_id: counts.get(gallery_id, 0) for gallery_id in ids}

    async def count_photos_in_galleries(self) -> int:
        """Distinct photos reachable from at least one gallery."""
        result = await self.db.execute(
            select(func.count(func.distinct(Photo.id)))
            .select_from(Photo)
            .join(gallery_albums, gallery_albums.c.album_id == Photo.album_id)
        )
        return result.scalar_one()
