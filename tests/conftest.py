import os
import tempfile
from pathlib import Path

# Settings are read at import time, so the environment has to be in place
# before anything from twilsta is imported.
_TMP = Path(tempfile.mkdtemp(prefix="twilsta-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP / 'bootstrap.db'}"
os.environ["UPLOAD_DIR"] = str(_TMP / "uploads")
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["MEDIA_BASE_URL"] = "http://testserver"
os.environ.pop("SMTP_HOST", None)

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import twilsta.db.base  # noqa: F401  registers every model on Base.metadata
from twilsta.core.rate_limit import rate_limiter
from twilsta.core.security import revoked_tokens
from twilsta.db.session import Base, get_db
from twilsta.main import app
from twilsta.services import storage_service
from twilsta.services.storage_service import StoredMedia, media_type_for

PASSWORD = "Secr3t!pass"


class FakeStorage:
    """In-memory storage backend; records saves and deletes."""

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_deletes = False
        self._seq = 0

    def save(self, data, *, folder, key, content_type, transform=None):
        self._seq += 1
        url = f"http://media.test/uploads/{folder}/{key}-{self._seq}"
        self.files[url] = data
        width = transform.width if transform and media_type_for(content_type) == "IMAGE" else None
        height = transform.height if transform and media_type_for(content_type) == "IMAGE" else None
        return StoredMedia(url=url, media_type=media_type_for(content_type), width=width, height=height)

    def delete(self, url):
        if self.fail_deletes:
            raise OSError("storage unavailable")
        self.deleted.append(url)
        return self.files.pop(url, None) is not None


@pytest.fixture(autouse=True)
def reset_process_state():
    rate_limiter.reset()
    revoked_tokens.clear()
    yield
    rate_limiter.reset()
    revoked_tokens.clear()


@pytest.fixture(autouse=True)
def fake_storage(monkeypatch):
    storage = FakeStorage()
    monkeypatch.setattr(storage_service, "_storage", storage)
    return storage


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def api_client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client
    finally:
        app.dependency_overrides.pop(get_db, None)


def auth(user: dict) -> dict:
    return {"Authorization": f"Bearer {user['access_token']}"}


@pytest.fixture
def register(api_client):
    """Register a user and return its id, tokens and headers.

    The client's cookie jar is cleared afterwards so requests only carry the
    identity a test passes explicitly.
    """

    async def _register(username: str, *, password: str = PASSWORD, **extra) -> dict:
        payload = {"email": f"{username}@example.com", "username": username, "password": password, **extra}
        resp = await api_client.post("/api/v1/auth/register", json=payload)
        assert resp.status_code == 201, resp.text
        api_client.cookies.clear()
        data = resp.json()["data"]
        user = {
            "id": data["user"]["id"],
            "username": username,
            "email": payload["email"],
            "access_token": data["access_token"],
            "refresh_token": data["refresh_token"],
        }
        user["headers"] = auth(user)
        return user

    return _register


@pytest_asyncio.fixture
async def alice(register):
    return await register("alice", full_name="Alice Liddell")


@pytest_asyncio.fixture
async def bob(register):
    return await register("bob")


@pytest_asyncio.fixture
async def carol(register):
    return await register("carol")


def image_file(name: str = "photo.jpg", content_type: str = "image/jpeg") -> dict:
    return {"file": (name, b"not-really-a-jpeg", content_type)}


@pytest.fixture
def create_post(api_client):
    async def _create_post(user: dict, *, caption: str | None = None, **fields) -> dict:
        form = {k: v for k, v in {"caption": caption, **fields}.items() if v is not None}
        resp = await api_client.post("/api/v1/posts", data=form, files=image_file(), headers=user["headers"])
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _create_post
