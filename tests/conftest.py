from contextlib import AsyncExitStack

import pytest
from httpx import ASGITransport, AsyncClient

from filevault.config import Settings
from filevault.main import create_app
from tests.utils import register


@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides) -> Settings:
        values = dict(
            APP_ENV="test",
            APP_SECRET_KEY="test-secret",
            DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'filevault.db'}",
            UPLOAD_PATH=str(tmp_path / "uploads"),
            MAX_FILE_SIZE=1024,
            RATE_LIMIT_ENABLED=False,
            LOG_LEVEL="WARNING",
        )
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
async def open_app():
    """Start an app (lifespan included) for the given settings, with a client."""
    async with AsyncExitStack() as stack:
        async def _open(settings: Settings, **kwargs):
            app = create_app(settings, **kwargs)
            await stack.enter_async_context(app.router.lifespan_context(app))
            client = await stack.enter_async_context(
                AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
            )
            return app, client

        yield _open


@pytest.fixture
async def app_and_client(open_app, make_settings):
    return await open_app(make_settings())


@pytest.fixture
def app(app_and_client):
    return app_and_client[0]


@pytest.fixture
def client(app_and_client):
    return app_and_client[1]


@pytest.fixture
def upload_dir(app):
    return app.state.storage.root


@pytest.fixture
async def db(app):
    async with app.state.db.sessionmaker() as session:
        yield session


@pytest.fixture
async def alice(client):
    return await register(client, "alice", "a@x.com", "pw1")


@pytest.fixture
async def bob(client):
    return await register(client, "bob", "b@x.com", "pw2")
