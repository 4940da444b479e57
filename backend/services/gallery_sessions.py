"""
Gallery viewing sessions.
Bookkeeping of who is viewing which gallery. Callers validate access first;
nothing here re-checks authorization.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from dao.gallery_session_dao import GallerySessionDAO
from models.gallery import GallerySession
from services.security import SecurityUtils, security_config

logger = logging.getLogger(__name__)

SESSION_TOKEN_BYTES = 32

@dataclass(frozen=True)
class SessionSummary:
    session: GallerySession
    is_recent: bool

class GallerySessionManager:
    """
    Upserts, reads and removes per-(gallery, user) sessions.
    Absence is reported through return values, not exceptions.
    """

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = SecurityUtils.get_utc_now,
                 active_window: Optional[timedelta] = None):
        self.db = db
        self.clock = clock
        self.active_window = active_window or timedelta(hours=security_config.gallery_session_active_hours)
        self.sessions = GallerySessionDAO(db)

    async def open_or_refresh(self, gallery_id: int, user_id: int) -> str:
        """
        Return the session token for the pair, creating the session on first view.

        An existing session has its last access advanced to now. When two requests
        race to create the same session, the unique constraint rejects the loser,
        which then refreshes the winner's row.
        """
        now = self.clock()
        existing = await self.sessions.get(gallery_id, user_id)
        if existing is not None:
            await self.sessions.touch(existing, now)
            return existing.session_token

        token = SecurityUtils.generate_secure_token(SESSION_TOKEN_BYTES)
        created = await self.sessions.create(gallery_id, user_id, token, now)
        if created is not None:
            logger.info(f"Gallery session started for user {user_id} on gallery {gallery_id}")
            return created.session_token

        winner = await self.sessions.get(gallery_id, user_id)
        if winner is None:
            raise RuntimeError(f"Session for gallery {gallery_id}, user {user_id} vanished during creation")
        await self.sessions.touch(winner, now)
        return winner.session_token

    async def get_session_info(self, gallery_id: int, user_id: int) -> Optional[GallerySession]:
        """The session for the pair, or None when the user has not viewed the gallery yet."""
        return await self.sessions.get(gallery_id, user_id)

    async def end_session(self, gallery_id: int, user_id: int) -> bool:
        removed = await self.sessions.delete(gallery_id, user_id)
        if removed is None:
            return False
        logger.info(f"Gallery session ended for user {user_id} on gallery {gallery_id}")
        return True

    async def end_session_by_id(self, session_id: int, gallery_id: Optional[int] = None) -> bool:
        """Remove a session by id; with gallery_id set, sessions of other galleries are left alone."""
        if gallery_id is not None:
            record = await self.sessions.get_by_id(session_id)
            if record is None or record.gallery_id != gallery_id:
                return False
        removed = await self.sessions.delete_by_id(session_id)
        if removed is None:
            return False
        logger.info(f"Gallery session {session_id} ended for gallery {removed.gallery_id}")
        return True

    async def end_all_sessions(self, gallery_id: int) -> int:
        count = await self.sessions.delete_all_for_gallery(gallery_id)
        logger.info(f"All sessions ended for gallery ID: {gallery_id} ({count} sessions)")
        return count

    def is_recent(self, session: GallerySession, now: Optional[datetime] = None) -> bool:
        """Display-only staleness flag; sessions are never expired automatically."""
        now = now or self.clock()
        return SecurityUtils.ensure_utc(session.last_access_date) > now - self.active_window

    async def list_sessions(self, gallery_id: int, limit: Optional[int] = None) -> List[SessionSummary]:
        now = self.clock()
        records = await self.sessions.list_for_gallery(gallery_id, limit=limit)
        return [SessionSummary(session=record, is_recent=self.is_recent(record, now)) for record in records]
