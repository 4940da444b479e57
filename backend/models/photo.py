"""
Photo shoot, album and photo models.
An album belongs to one photo shoot and owns its photos; galleries reference albums
through the gallery_albums join table without owning them.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, BigInteger, Index
from sqlalchemy.sql import func
from services.db import Base

class PhotoShoot(Base):
    """Scheduled shoot for a client; albums are produced from it."""
    __tablename__ = "photo_shoots"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(100), nullable=False)
    client_profile_id = Column(Integer, ForeignKey('client_profiles.id'), nullable=True, index=True)
    scheduled_date = Column(DateTime(timezone=True), nullable=True)
    location = Column(String(200), nullable=False, default="")
    created_date = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<PhotoShoot(id={self.id}, title='{self.title}')>"

class Album(Base):
    """
    Album of photos from a single shoot. Deleting an album deletes its photos.
    """
    __tablename__ = "albums"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    photo_shoot_id = Column(Integer, ForeignKey('photo_shoots.id', ondelete='CASCADE'), nullable=False, index=True)
    client_profile_id = Column(Integer, ForeignKey('client_profiles.id'), nullable=True, index=True)
    created_date = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    def __repr__(self):
        return f"<Album(id={self.id}, name='{self.name}', photo_shoot_id={self.photo_shoot_id})>"

class Photo(Base):
    """
    Photo stored under the gallery content root.
    full_image_path and thumbnail_path are relative to that root.
    """
    __tablename__ = "photos"

    id = Column(Integer, primary_key=True, index=True)
    album_id = Column(Integer, ForeignKey('albums.id', ondelete='CASCADE'), nullable=False, index=True)

    file_name = Column(String(100), nullable=False)
    title = Column(String(200), nullable=True)
    description = Column(Text, nullable=True)
    full_image_path = Column(String(500), nullable=True)
    thumbnail_path = Column(String(500), nullable=True)
    file_size = Column(BigInteger, default=0, nullable=False)

    display_order = Column(Integer, default=0, nullable=False)
    upload_date = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('idx_photo_album_order', 'album_id', 'display_order'),
    )

    def __repr__(self):
        return f"<Photo(id={self.id}, file_name='{self.file_name}', album_id={self.album_id})>"
