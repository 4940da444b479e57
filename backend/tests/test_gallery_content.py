"""
Security tests for gallery content resolution and original file retrieval.
Tests the check order on the download path, containment under the content
root, and the photo ordering shown to clients.
"""
import os
import pytest
from datetime import timedelta
from sqlalchemy.ext.asyncio import AsyncSession

from models.photo import Photo
from schemas.gallery import DenialReason, NotFoundReason
from services.gallery_content import (
    GalleryContentResolver, FileServed, AccessDenied, ContentNotFound, ContentStorageError,
    download_filename
)

@pytest.mark.asyncio
class TestViewablePhotos:

    async def test_photos_ordered_by_display_order_then_id(self, db_session: AsyncSession, gallery, photos,
                                                           content_root):
        resolver = GalleryContentResolver(db_session, content_root=content_root)

        viewable = await resolver.get_viewable_photos(gallery.id)

        # ring and cake share display order 1; ring has the lower id
        assert [photo.id for photo in viewable] == [
            photos["ring"].id, photos["cake"].id, photos["first_dance"].id
        ]

    async def test_unattached_album_photos_are_not_viewable(self, db_session: AsyncSession, gallery, photos,
                                                            content_root):
        resolver = GalleryContentResolver(db_session, content_root=content_root)

        viewable_ids = {photo.id for photo in await resolver.get_viewable_photos(gallery.id)}

        assert photos["stray"].id not in viewable_ids

    async def test_album_shared_by_two_galleries(self, db_session: AsyncSession, gallery_utils, albums,
                                                 gallery, photos, content_root, clock):
        second = await gallery_utils.create_gallery(
            db_session, "Reception Only", expiry_date=clock.now + timedelta(days=7),
            album_ids=[albums["reception"].id]
        )
        resolver = GalleryContentResolver(db_session, content_root=content_root)

        assert [p.id for p in await resolver.get_viewable_photos(second.id)] == [photos["cake"].id]
        assert len(await resolver.get_viewable_photos(gallery.id)) == 3

    async def test_gallery_without_albums_is_empty(self, db_session: AsyncSession, gallery_utils,
                                                   content_root, clock):
        empty = await gallery_utils.create_gallery(
            db_session, "Empty", expiry_date=clock.now + timedelta(days=7)
        )
        resolver = GalleryContentResolver(db_session, content_root=content_root)

        assert await resolver.get_viewable_photos(empty.id) == []

class TestContentPaths:

    def test_relative_path_resolves_under_root(self, content_root):
        resolver = GalleryContentResolver(None, content_root=content_root)
        assert resolver.resolve_content_path("photos/ring.jpg") == os.path.join(content_root, "photos", "ring.jpg")

    def test_leading_separator_is_relative_to_root(self, content_root):
        resolver = GalleryContentResolver(None, content_root=content_root)
        assert resolver.resolve_content_path("/photos/ring.jpg") == os.path.join(content_root, "photos", "ring.jpg")

    def test_parent_traversal_is_rejected(self, content_root):
        resolver = GalleryContentResolver(None, content_root=content_root)
        assert resolver.resolve_content_path("../secret.txt") is None
        assert resolver.resolve_content_path("photos/../../secret.txt") is None

    def test_embedded_null_byte_is_rejected(self, content_root):
        resolver = GalleryContentResolver(None, content_root=content_root)
        assert resolver.resolve_content_path("photos/ring\x00.jpg") is None

    def test_sibling_directory_with_shared_prefix_is_rejected(self, content_root):
        resolver = GalleryContentResolver(None, content_root=content_root)
        sibling = "../" + os.path.basename(content_root) + "-evil/a.jpg"
        assert resolver.resolve_content_path(sibling) is None

class TestDownloadFilename:

    def test_title_is_sanitized(self):
        photo = Photo(id=7, file_name="x.jpg", title="Ring <Close-up>!")
        assert download_filename(photo) == "Ring Close-up.jpg"

    def test_header_breaking_characters_are_removed(self):
        photo = Photo(id=7, file_name="x.jpg", title='bad"name\r\nX-Injected: 1')
        name = download_filename(photo)
        assert '"' not in name and "\r" not in name and "\n" not in name and ":" not in name

    def test_missing_or_unusable_title_falls_back_to_id(self):
        assert download_filename(Photo(id=7, file_name="x.jpg", title=None)) == "photo_7.jpg"
        assert download_filename(Photo(id=8, file_name="x.jpg", title="!!!")) == "photo_8.jpg"
        assert download_filename(Photo(id=9, file_name="x.jpg", title="../..")) == "photo_9.jpg"

@pytest.mark.asyncio
@pytest.mark.security
class TestRetrieveOriginalFile:

    async def test_permitted_download_is_served(self, db_session: AsyncSession, client_user, gallery,
                                                grant, photos, content_root, clock):
        resolver = GalleryContentResolver(db_session, content_root=content_root, clock=clock)

        result = await resolver.retrieve_original_file(photos["first_dance"].id, gallery.id, client_user.id)

        assert isinstance(result, FileServed)
        assert result.filename == "First Dance.jpg"
        assert result.media_type == "image/jpeg"
        assert result.path == os.path.join(content_root, "photos", "first_dance.jpg")
        content = b"".join(result.iter_chunks(chunk_size=16))
        assert content == b"first-dance-bytes" * 10
        assert result.size == len(content)

    async def test_untitled_photo_uses_fallback_name(self, db_session: AsyncSession, client_user, gallery,
                                                     grant, photos, content_root, clock):
        resolver = GalleryContentResolver(db_session, content_root=content_root, clock=clock)

        result = await resolver.retrieve_original_file(photos["cake"].id, gallery.id, client_user.id)

        assert isinstance(result, FileServed)
        assert result.filename == f"photo_{photos['cake'].id}.jpg"

    async def test_client_without_grant_is_denied(self, db_session: AsyncSession, outsider_user, gallery,
                                                  grant, photos, content_root, clock):
        resolver = GalleryContentResolver(db_session, content_root=content_root, clock=clock)

        result = await resolver.retrieve_original_file(photos["ring"].id, gallery.id, outsider_user.id)

        assert result == AccessDenied(DenialReason.NO_ACCESS)

    async def test_expired_grant_is_denied_even_with_download_permission(self, db_session: AsyncSession,
                                                                          client_user, gallery, grant, photos,
                                                                          content_root, clock):
        grant.expiry_date = clock.now - timedelta(minutes=1)
        await db_session.commit()
        resolver = GalleryContentResolver(db_session, content_root=content_root, clock=clock)

        result = await resolver.retrieve_original_file(photos["ring"].id, gallery.id, client_user.id)

        assert result == AccessDenied(DenialReason.NO_ACCESS)

    async def test_grant_without_download_permission_is_forbidden(self, db_session: AsyncSession,
                                                                  client_user, gallery, grant, photos,
                                                                  content_root, clock):
        grant.can_download = False
        await db_session.commit()
        resolver = GalleryContentResolver(db_session, content_root=content_root, clock=clock)

        result = await resolver.retrieve_original_file(photos["ring"].id, gallery.id, client_user.id)

        assert result == AccessDenied(DenialReason.DOWNLOAD_NOT_PERMITTED)

    async def test_photo_from_another_gallery_is_not_found(self, db_session: AsyncSession, client_user,
                                                           gallery, grant, photos, content_root, clock):
        resolver = GalleryContentResolver(db_session, content_root=content_root, clock=clock)

        result = await resolver.retrieve_original_file(photos["stray"].id, gallery.id, client_user.id)

        assert result == ContentNotFound(NotFoundReason.PHOTO_NOT_IN_GALLERY)

    async def test_photo_without_path_is_not_found(self, db_session: AsyncSession, client_user, gallery,
                                                   grant, photos, content_root, clock):
        photos["ring"].full_image_path = None
        await db_session.commit()
        resolver = GalleryContentResolver(db_session, content_root=content_root, clock=clock)

        result = await resolver.retrieve_original_file(photos["ring"].id, gallery.id, client_user.id)

        assert result == ContentNotFound(NotFoundReason.NO_FILE_PATH)

    async def test_stored_path_escaping_root_is_denied(self, db_session: AsyncSession, client_user, gallery,
                                                       grant, photos, content_root, clock, caplog):
        photos["ring"].full_image_path = "../secret.txt"
        await db_session.commit()
        resolver = GalleryContentResolver(db_session, content_root=content_root, clock=clock)

        with caplog.at_level("WARNING"):
            result = await resolver.retrieve_original_file(photos["ring"].id, gallery.id, client_user.id)

        assert result == AccessDenied(DenialReason.PATH_ESCAPE)
        assert "path_escape_attempt" in caplog.text

    async def test_stored_path_with_null_byte_is_denied(self, db_session: AsyncSession, client_user, gallery,
                                                        grant, photos, content_root, clock, caplog):
        photos["ring"].full_image_path = "photos/ring\x00.jpg"
        await db_session.commit()
        resolver = GalleryContentResolver(db_session, content_root=content_root, clock=clock)

        with caplog.at_level("WARNING"):
            result = await resolver.retrieve_original_file(photos["ring"].id, gallery.id, client_user.id)

        assert result == AccessDenied(DenialReason.PATH_ESCAPE)
        assert "path_escape_attempt" in caplog.text

    async def test_missing_file_is_not_found(self, db_session: AsyncSession, client_user, gallery, grant,
                                             photos, content_root, clock):
        os.remove(os.path.join(content_root, "photos", "ring.jpg"))
        resolver = GalleryContentResolver(db_session, content_root=content_root, clock=clock)

        result = await resolver.retrieve_original_file(photos["ring"].id, gallery.id, client_user.id)

        assert result == ContentNotFound(NotFoundReason.FILE_MISSING)

    async def test_directory_is_not_served(self, db_session: AsyncSession, client_user, gallery, grant,
                                           photos, content_root, clock):
        photos["ring"].full_image_path = "photos"
        await db_session.commit()
        resolver = GalleryContentResolver(db_session, content_root=content_root, clock=clock)

        result = await resolver.retrieve_original_file(photos["ring"].id, gallery.id, client_user.id)

        assert result == ContentNotFound(NotFoundReason.FILE_MISSING)

    async def test_unreadable_storage_raises(self, db_session: AsyncSession, client_user, gallery, grant,
                                             photos, content_root, clock, monkeypatch):
        real_stat = os.stat

        def failing_stat(path, *args, **kwargs):
            if str(path).startswith(content_root):
                raise PermissionError("storage offline")
            return real_stat(path, *args, **kwargs)

        monkeypatch.setattr(os, "stat", failing_stat)
        resolver = GalleryContentResolver(db_session, content_root=content_root, clock=clock)

        with pytest.raises(ContentStorageError):
            await resolver.retrieve_original_file(photos["ring"].id, gallery.id, client_user.id)

    async def test_denial_checks_run_before_membership(self, db_session: AsyncSession, outsider_user,
                                                       gallery, grant, content_root, clock):
        """Without access, a nonexistent photo is still reported as a denial."""
        resolver = GalleryContentResolver(db_session, content_root=content_root, clock=clock)

        result = await resolver.retrieve_original_file(999999, gallery.id, outsider_user.id)

        assert result == AccessDenied(DenialReason.NO_ACCESS)
