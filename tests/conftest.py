import pytest
from httpx import AsyncClient, ASGITransport
from email_tracker.core.config import Settings
from email_tracker.main import create_app


@pytest.fixture
def test_settings(tmp_path):
    """Fresh SQLite file per test, in-memory rate limiting"""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'tracker.db'}",
        redis_url=None,
        rate_limit_requests=1000,
        base_url=None
    )


@pytest.fixture
async def app(test_settings):
    application = create_app(test_settings)
    async with application.router.lifespan_context(application):
        yield application


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def database(app):
    return app.state.database
