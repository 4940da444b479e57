"""
Gallery, access grant and viewing session models.
Implements per-client gallery grants with validity windows and ephemeral
per-(gallery, user) viewing sessions.
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Table, UniqueConstraint
from services.db import Base
from services.security import SecurityUtils

DEFAULT_BRAND_COLOR = "#2c3e50"

# Shared, non-owning association: an album can appear in several galleries
gallery_albums = Table(
    'gallery_albums',
    Base.metadata,
    Column('gallery_id', Integer, ForeignKey('galleries.id', ondelete='CASCADE'), primary_key=True),
    Column('album_id', Integer, ForeignKey('albums.id', ondelete='CASCADE'), primary_key=True),
)

class Gallery(Base):
    """
    Client-facing collection of albums with branding and an expiry date.
    """
    __tablename__ = "galleries"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    brand_color = Column(String(20), nullable=False, default=DEFAULT_BRAND_COLOR)
    logo_path = Column(String(500), nullable=True)

    created_date = Column(DateTime(timezone=True), nullable=False, default=SecurityUtils.get_utc_now)
    expiry_date = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    def __repr__(self):
        return f"<Gallery(id={self.id}, name='{self.name}', active={self.is_active})>"

    def is_live(self, now: datetime) -> bool:
        """Active and not past its expiry date."""
        return bool(self.is_active) and now < SecurityUtils.ensure_utc(self.expiry_date)

    def is_expired(self, now: datetime) -> bool:
        return SecurityUtils.ensure_utc(self.expiry_date) <= now

class GalleryAccess(Base):
    """
    Grant allowing one client to view one gallery.
    Revocation is a soft disable so the grant history is kept.
    """
    __tablename__ = "gallery_accesses"

    id = Column(Integer, primary_key=True, index=True)
    gallery_id = Column(Integer, ForeignKey('galleries.id', ondelete='CASCADE'), nullable=False, index=True)
    client_profile_id = Column(Integer, ForeignKey('client_profiles.id', ondelete='CASCADE'), nullable=False, index=True)

    granted_date = Column(DateTime(timezone=True), nullable=False, default=SecurityUtils.get_utc_now)
    expiry_date = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    can_download = Column(Boolean, default=False, nullable=False)
    can_proof = Column(Boolean, default=False, nullable=False)
    can_order = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint('gallery_id', 'client_profile_id', name='uq_gallery_access_gallery_client'),
    )

    def __repr__(self):
        return (f"<GalleryAccess(gallery_id={self.gallery_id}, client_profile_id={self.client_profile_id}, "
                f"active={self.is_active})>")

    def is_valid(self, now: datetime) -> bool:
        if not self.is_active:
            return False
        return self.expiry_date is None or now < SecurityUtils.ensure_utc(self.expiry_date)

class GallerySession(Base):
    """
    Viewing session for a (gallery, user) pair, refreshed on every view.
    Not a security boundary; access is always validated separately.
    """
    __tablename__ = "gallery_sessions"

    id = Column(Integer, primary_key=True, index=True)
    gallery_id = Column(Integer, ForeignKey('galleries.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    session_token = Column(String(255), unique=True, nullable=False, index=True)

    created_date = Column(DateTime(timezone=True), nullable=False)
    last_access_date = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint('gallery_id', 'user_id', name='uq_gallery_session_gallery_user'),
    )

    def __repr__(self):
        return f"<GallerySession(gallery_id={self.gallery_id}, user_id={self.user_id})>"
