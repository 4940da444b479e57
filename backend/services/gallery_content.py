"""
Gallery content resolution and original file retrieval.
Assembles the ordered photo set for a gallery and guards the download path with
access, capability, gallery membership and content-root containment checks.
"""
import os
import stat
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator, List, Optional, Union
from sqlalchemy.ext.asyncio import AsyncSession

from dao.gallery_dao import GalleryDAO
from models.photo import Photo
from schemas.gallery import DenialReason, NotFoundReason
from services.access_validator import GalleryAccessValidator
from services.security import SecurityUtils, security_config

logger = logging.getLogger(__name__)

DOWNLOAD_MEDIA_TYPE = "image/jpeg"
DOWNLOAD_CHUNK_SIZE = 64 * 1024

class ContentStorageError(Exception):
    """Infrastructure failure while reading gallery content."""
    pass

@dataclass(frozen=True)
class FileServed:
    """A file cleared for download."""
    photo_id: int
    path: str
    filename: str
    size: int
    media_type: str = DOWNLOAD_MEDIA_TYPE

    def iter_chunks(self, chunk_size: int = DOWNLOAD_CHUNK_SIZE) -> Iterator[bytes]:
        try:
            with open(self.path, "rb") as handle:
                while True:
                    chunk = handle.read(chunk_size)
                    if not chunk:
                        break
                    yield chunk
        except OSError as e:
            logger.error(f"Error reading photo file for photo {self.photo_id}: {e}")
            raise ContentStorageError("Photo file could not be read") from e

@dataclass(frozen=True)
class AccessDenied:
    reason: DenialReason

@dataclass(frozen=True)
class ContentNotFound:
    reason: NotFoundReason

FileRetrieval = Union[FileServed, AccessDenied, ContentNotFound]

def download_filename(photo: Photo) -> str:
    """Filename offered to the client: the sanitized title, else photo_<id>.jpg."""
    stem = SecurityUtils.sanitize_filename(photo.title)
    if not stem:
        return f"photo_{photo.id}.jpg"
    return f"{stem}.jpg"

class GalleryContentResolver:
    """
    Serves gallery content to callers that have passed access validation.
    """

    def __init__(self, db: AsyncSession, content_root: Optional[str] = None,
                 clock: Callable[[], datetime] = SecurityUtils.get_utc_now):
        self.db = db
        self.content_root = os.path.abspath(content_root or security_config.gallery_content_root)
        self.galleries = GalleryDAO(db)
        self.validator = GalleryAccessValidator(db, clock=clock)

    async def get_viewable_photos(self, gallery_id: int) -> List[Photo]:
        """
        Photos across every album attached to the gallery, ordered by display
        order with ties broken by photo id. Requires prior access validation.
        """
        return await self.galleries.list_photos(gallery_id)

    def resolve_content_path(self, relative_path: str) -> Optional[str]:
        """
        Absolute path for a stored relative path, or None if it lands outside
        the content root.
        """
        if "\x00" in relative_path:
            return None
        candidate = os.path.abspath(os.path.join(self.content_root, relative_path.lstrip("/\\")))
        try:
            contained = os.path.commonpath([self.content_root, candidate]) == self.content_root
        except ValueError:
            contained = False
        return candidate if contained else None

    async def retrieve_original_file(self, photo_id: int, gallery_id: int, user_id: int,
                                     client_ip: Optional[str] = None) -> FileRetrieval:
        """
        Clear a photo's original file for download.

        Checks run in order: access to the gallery, download capability, photo
        membership in the gallery, containment under the content root, file
        existence. Access is re-validated here regardless of earlier checks.

        Args:
            photo_id: Photo requested
            gallery_id: Gallery the caller claims the photo belongs to
            user_id: Authenticated principal
            client_ip: Recorded in security events

        Returns:
            FileServed, AccessDenied or ContentNotFound

        Raises:
            ContentStorageError: If the file system cannot be read
        """
        event_details = {"user_id": user_id, "gallery_id": gallery_id, "photo_id": photo_id}

        decision = await self.validator.evaluate_access(gallery_id, user_id)
        if not decision.allowed:
            SecurityUtils.log_security_event(
                "download_access_denied",
                {**event_details, "reason": decision.reason.value},
                client_ip=client_ip,
                level=logging.WARNING
            )
            return AccessDenied(DenialReason.NO_ACCESS)

        if decision.grant is None or not decision.grant.can_download:
            SecurityUtils.log_security_event(
                "download_not_permitted",
                event_details,
                client_ip=client_ip,
                level=logging.WARNING
            )
            return AccessDenied(DenialReason.DOWNLOAD_NOT_PERMITTED)

        photo = await self.galleries.get_photo_in_gallery(photo_id, gallery_id)
        if photo is None:
            logger.warning(f"Download attempt for photo {photo_id} not in gallery {gallery_id}")
            return ContentNotFound(NotFoundReason.PHOTO_NOT_IN_GALLERY)

        if not photo.full_image_path:
            logger.warning(f"Photo has no file path: {photo_id}")
            return ContentNotFound(NotFoundReason.NO_FILE_PATH)

        resolved_path = self.resolve_content_path(photo.full_image_path)
        if resolved_path is None:
            SecurityUtils.log_security_event(
                "path_escape_attempt",
                {**event_details, "stored_path": photo.full_image_path},
                client_ip=client_ip,
                level=logging.WARNING
            )
            return AccessDenied(DenialReason.PATH_ESCAPE)

        try:
            file_stat = os.stat(resolved_path)
        except (FileNotFoundError, NotADirectoryError):
            logger.warning(f"Photo file not found for photo {photo_id}")
            return ContentNotFound(NotFoundReason.FILE_MISSING)
        except OSError as e:
            logger.error(f"Error checking photo file for photo {photo_id}: {e}")
            raise ContentStorageError("Photo file could not be checked") from e

        if not stat.S_ISREG(file_stat.st_mode):
            logger.warning(f"Photo path is not a regular file for photo {photo_id}")
            return ContentNotFound(NotFoundReason.FILE_MISSING)

        SecurityUtils.log_security_event(
            "photo_downloaded",
            event_details,
            client_ip=client_ip
        )
        return FileServed(
            photo_id=photo.id,
            path=resolved_path,
            filename=download_filename(photo),
            size=file_stat.st_size
        )
