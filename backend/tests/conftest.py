"""
Pytest configuration and fixtures for gallery access testing.
Provides test database setup, users, clients, galleries with photos on disk,
and an HTTP client bound to the test database.
"""
import os

# Configuration is read once at import time by services.security
os.environ.setdefault("JWT_SECRET_KEY", "test_secret_key_for_testing_purposes_only_very_long_and_secure")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["JWT_ACCESS_TOKEN_EXPIRE_MINUTES"] = "30"
os.environ["ENABLE_SECURITY_HEADERS"] = "true"
os.environ["GALLERY_SESSION_ACTIVE_HOURS"] = "24"
os.environ["GRANT_DEFAULT_CAN_DOWNLOAD"] = "false"
os.environ["GRANT_DEFAULT_CAN_PROOF"] = "false"
os.environ["GRANT_DEFAULT_CAN_ORDER"] = "false"

import pytest
from datetime import datetime, timedelta
from typing import AsyncGenerator, Dict, Iterable, Optional
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from services.db import Base
from models.user import User, ClientProfile
from models.photo import PhotoShoot, Album, Photo
from models.gallery import Gallery, GalleryAccess
from dao.user_dao import UserDAO, ClientProfileDAO
from dao.gallery_dao import GalleryDAO
from dao.gallery_access_dao import GalleryAccessDAO
from services.auth import get_password_hash, create_access_token
from services.security import SecurityUtils

# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PASSWORD = "TestPassword123!"
# bcrypt is slow on purpose; hash once for every fixture user
TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)

class FakeClock:
    """Settable clock injected into services in place of the wall clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)

@pytest.fixture
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()

@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(SecurityUtils.get_utc_now().replace(microsecond=0))

class GalleryTestUtils:
    """Builders for the rows gallery tests need."""

    PASSWORD = TEST_PASSWORD

    @staticmethod
    async def create_user(db_session: AsyncSession, email: str, is_photographer: bool = False,
                          is_active: bool = True) -> User:
        user = User(
            email=email,
            hashed_password=TEST_PASSWORD_HASH,
            is_active=is_active,
            is_photographer=is_photographer,
            first_name="Test",
            last_name="User"
        )
        return await UserDAO(db_session).create_user(user)

    @staticmethod
    async def create_client_profile(db_session: AsyncSession, user: User) -> ClientProfile:
        return await ClientProfileDAO(db_session).create_profile(ClientProfile(user_id=user.id, notes=""))

    @staticmethod
    async def create_album(db_session: AsyncSession, name: str, photo_shoot_id: int) -> Album:
        album = Album(name=name, description=f"{name} album", photo_shoot_id=photo_shoot_id)
        db_session.add(album)
        await db_session.commit()
        await db_session.refresh(album)
        return album

    @staticmethod
    async def add_photo(db_session: AsyncSession, album: Album, file_name: str,
                        title: Optional[str] = None, full_image_path: Optional[str] = None,
                        display_order: int = 0) -> Photo:
        photo = Photo(
            album_id=album.id,
            file_name=file_name,
            title=title,
            full_image_path=full_image_path,
            thumbnail_path=f"thumbs/{file_name}",
            display_order=display_order
        )
        db_session.add(photo)
        await db_session.commit()
        await db_session.refresh(photo)
        return photo

    @staticmethod
    async def create_gallery(db_session: AsyncSession, name: str, expiry_date: datetime,
                             is_active: bool = True, album_ids: Iterable[int] = (),
                             created_date: Optional[datetime] = None) -> Gallery:
        dao = GalleryDAO(db_session)
        gallery = Gallery(
            name=name,
            description=f"{name} description",
            created_date=created_date or SecurityUtils.get_utc_now(),
            expiry_date=expiry_date,
            is_active=is_active
        )
        gallery = await dao.create(gallery)
        if album_ids:
            await dao.link_albums(gallery.id, album_ids)
        return gallery

    @staticmethod
    async def grant(db_session: AsyncSession, gallery: Gallery, client_profile: ClientProfile,
                    now: datetime, expiry_date: Optional[datetime] = None,
                    can_download: bool = True) -> GalleryAccess:
        return await GalleryAccessDAO(db_session).upsert(
            gallery.id,
            client_profile.id,
            expiry_date=expiry_date,
            can_download=can_download,
            can_proof=False,
            can_order=False,
            now=now
        )

    @staticmethod
    def auth_headers(user: User) -> Dict[str, str]:
        token = create_access_token({"sub": user.email})
        return {"Authorization": f"Bearer {token}"}

@pytest.fixture
def gallery_utils():
    """Provide gallery test builders."""
    return GalleryTestUtils

@pytest.fixture
async def photographer(db_session: AsyncSession) -> User:
    return await GalleryTestUtils.create_user(db_session, "studio@example.com", is_photographer=True)

@pytest.fixture
async def client_user(db_session: AsyncSession) -> User:
    return await GalleryTestUtils.create_user(db_session, "client@example.com")

@pytest.fixture
async def client_profile(db_session: AsyncSession, client_user: User) -> ClientProfile:
    return await GalleryTestUtils.create_client_profile(db_session, client_user)

@pytest.fixture
async def outsider_user(db_session: AsyncSession) -> User:
    """A client with a profile but no grants."""
    user = await GalleryTestUtils.create_user(db_session, "outsider@example.com")
    await GalleryTestUtils.create_client_profile(db_session, user)
    return user

@pytest.fixture
def content_root(tmp_path) -> str:
    """Gallery content root with one file per fixture photo."""
    root = tmp_path / "wwwroot"
    photos_dir = root / "photos"
    photos_dir.mkdir(parents=True)
    (photos_dir / "first_dance.jpg").write_bytes(b"first-dance-bytes" * 10)
    (photos_dir / "ring.jpg").write_bytes(b"ring-bytes")
    (photos_dir / "cake.jpg").write_bytes(b"cake-bytes")
    (photos_dir / "stray.jpg").write_bytes(b"stray-bytes")
    (tmp_path / "secret.txt").write_text("outside the content root")
    return str(root)

@pytest.fixture
async def photo_shoot(db_session: AsyncSession, client_profile: ClientProfile) -> PhotoShoot:
    shoot = PhotoShoot(title="Wedding", client_profile_id=client_profile.id, location="Chapel")
    db_session.add(shoot)
    await db_session.commit()
    await db_session.refresh(shoot)
    return shoot

@pytest.fixture
async def albums(db_session: AsyncSession, photo_shoot: PhotoShoot) -> Dict[str, Album]:
    return {
        "ceremony": await GalleryTestUtils.create_album(db_session, "Ceremony", photo_shoot.id),
        "reception": await GalleryTestUtils.create_album(db_session, "Reception", photo_shoot.id),
        "outtakes": await GalleryTestUtils.create_album(db_session, "Outtakes", photo_shoot.id),
    }

@pytest.fixture
async def photos(db_session: AsyncSession, albums: Dict[str, Album]) -> Dict[str, Photo]:
    """
    Ceremony holds first_dance (order 2) and ring (order 1), reception holds
    cake (order 1). Outtakes is never attached to the gallery fixture.
    """
    add = GalleryTestUtils.add_photo
    first_dance = await add(db_session, albums["ceremony"], "first_dance.jpg", title="First Dance",
                            full_image_path="photos/first_dance.jpg", display_order=2)
    ring = await add(db_session, albums["ceremony"], "ring.jpg", title="Ring <Close-up>!",
                     full_image_path="photos/ring.jpg", display_order=1)
    cake = await add(db_session, albums["reception"], "cake.jpg", title=None,
                     full_image_path="/photos/cake.jpg", display_order=1)
    stray = await add(db_session, albums["outtakes"], "stray.jpg", title="Stray",
                      full_image_path="photos/stray.jpg", display_order=0)
    return {"first_dance": first_dance, "ring": ring, "cake": cake, "stray": stray}

@pytest.fixture
async def gallery(db_session: AsyncSession, albums: Dict[str, Album], photos, clock: FakeClock) -> Gallery:
    """Live gallery showing the ceremony and reception albums."""
    return await GalleryTestUtils.create_gallery(
        db_session,
        "Smith Wedding",
        expiry_date=clock.now + timedelta(days=30),
        album_ids=[albums["ceremony"].id, albums["reception"].id],
        created_date=clock.now - timedelta(days=1)
    )

@pytest.fixture
async def grant(db_session: AsyncSession, gallery: Gallery, client_profile: ClientProfile,
                clock: FakeClock) -> GalleryAccess:
    """Open-ended grant with download permission."""
    return await GalleryTestUtils.grant(db_session, gallery, client_profile, now=clock.now)

@pytest.fixture
async def api_client(test_engine, content_root: str, monkeypatch):
    """HTTP client for the app with get_db bound to the test database."""
    from httpx import AsyncClient, ASGITransport
    from main import app
    from services.db import get_db
    from services.security import security_config

    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(security_config, "gallery_content_root", content_root)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client

    app.dependency_overrides.clear()

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests that go through the HTTP app"
    )
    config.addinivalue_line(
        "markers", "security: marks tests as security tests"
    )
