"""
Pydantic schemas and enums for gallery access, sessions and content.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from datetime import datetime
from enum import Enum
import re

HEX_COLOR_PATTERN = re.compile(r'^#[0-9a-fA-F]{6}$')

class AccessDecisionReason(str, Enum):
    """Why access to a gallery was allowed or refused."""
    GRANTED = "granted"
    NO_CLIENT_PROFILE = "no_client_profile"
    NO_GRANT = "no_grant"
    GRANT_INACTIVE = "grant_inactive"
    GRANT_EXPIRED = "grant_expired"
    GALLERY_NOT_FOUND = "gallery_not_found"
    GALLERY_INACTIVE = "gallery_inactive"
    GALLERY_EXPIRED = "gallery_expired"

class DenialReason(str, Enum):
    """Denials on the file retrieval path."""
    NO_ACCESS = "no_access"
    DOWNLOAD_NOT_PERMITTED = "download_not_permitted"
    PATH_ESCAPE = "path_escape"

class NotFoundReason(str, Enum):
    """Not-found outcomes on the file retrieval path."""
    PHOTO_NOT_IN_GALLERY = "photo_not_in_gallery"
    NO_FILE_PATH = "no_file_path"
    FILE_MISSING = "file_missing"

# ==========================================
# CLIENT-FACING SCHEMAS
# ==========================================

class ClientGallery(BaseModel):
    """Gallery listing entry for a client with a valid grant."""
    gallery_id: int
    name: str
    description: str
    brand_color: str
    photo_count: int
    expiry_date: datetime
    granted_date: datetime
    can_download: bool
    can_proof: bool
    can_order: bool

class GalleryPhoto(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: Optional[str] = None
    file_name: str
    thumbnail_path: Optional[str] = None
    display_order: int

class GalleryView(BaseModel):
    gallery_id: int
    name: str
    brand_color: str
    session_token: str
    photos: List[GalleryPhoto]

class GallerySessionInfo(BaseModel):
    gallery_id: int
    name: str
    description: str
    brand_color: str
    logo_path: Optional[str] = None
    expiry_date: datetime
    created_date: Optional[datetime] = None
    last_access_date: Optional[datetime] = None

class SessionInfoResponse(BaseModel):
    success: bool
    data: Optional[GallerySessionInfo] = None
    message: Optional[str] = None

class MessageResponse(BaseModel):
    success: bool
    message: str

# ==========================================
# OPERATOR SCHEMAS
# ==========================================

class GalleryBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=2000)
    expiry_date: datetime
    is_active: bool = True
    brand_color: str = "#2c3e50"
    album_ids: List[int] = Field(default_factory=list)

    @field_validator('brand_color')
    def validate_brand_color(cls, v):
        if not HEX_COLOR_PATTERN.match(v):
            raise ValueError("brand_color must be a #rrggbb hex color")
        return v.lower()

    @field_validator('name')
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("name cannot be blank")
        return v

class GalleryCreate(GalleryBase):
    client_profile_ids: List[int] = Field(default_factory=list)

class GalleryUpdate(GalleryBase):
    # Omitted means unchanged; status changes also go through PATCH /status
    is_active: Optional[bool] = None

class GalleryStatusUpdate(BaseModel):
    is_active: bool

class GallerySummary(BaseModel):
    id: int
    name: str
    description: str
    created_date: datetime
    expiry_date: datetime
    is_active: bool
    photo_count: int
    session_count: int
    last_access_date: Optional[datetime] = None

class GallerySessionSummary(BaseModel):
    id: int
    user_id: int
    session_token: str
    created_date: datetime
    last_access_date: datetime
    is_recent: bool

class GalleryDetail(BaseModel):
    id: int
    name: str
    description: str
    created_date: datetime
    expiry_date: datetime
    is_active: bool
    brand_color: str
    logo_path: Optional[str] = None
    photo_count: int
    photos: List[GalleryPhoto]
    album_ids: List[int]
    total_sessions: int
    active_sessions: int
    last_access_date: Optional[datetime] = None
    recent_sessions: List[GallerySessionSummary]

class AccessGrantRequest(BaseModel):
    client_profile_id: int
    expiry_date: Optional[datetime] = None
    can_download: Optional[bool] = None
    can_proof: Optional[bool] = None
    can_order: Optional[bool] = None

class AccessGrantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    gallery_id: int
    client_profile_id: int
    granted_date: datetime
    expiry_date: Optional[datetime] = None
    is_active: bool
    can_download: bool
    can_proof: bool
    can_order: bool

class AlbumIdsRequest(BaseModel):
    album_ids: List[int] = Field(..., min_length=1)

class AlbumSelection(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    photo_count: int
    is_selected: bool

class GalleryStats(BaseModel):
    total_galleries: int
    active_galleries: int
    expired_galleries: int
    total_sessions: int
    total_photos: int

class EndAllSessionsResponse(BaseModel):
    success: bool
    ended: int

class AccessUrlResponse(BaseModel):
    gallery_id: int
    url: str
