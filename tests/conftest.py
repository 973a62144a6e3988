"""Shared fixtures: a fresh app per test on a throwaway SQLite file."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient

from research_tasks.config import Settings, clear_settings_cache
from research_tasks.main import create_app, lifespan
from research_tasks.models import Role
from tests.helpers import register, set_role

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from fastapi import FastAPI


@pytest.fixture(autouse=True)
def _clear_caches():
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def settings(tmp_path: Path, upload_dir: Path) -> Settings:
    return Settings(
        SECRET_KEY="test-secret",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        AUTH_PROVIDER="local",
        STORAGE_BACKEND="local",
        UPLOAD_DIR=str(upload_dir),
        MAX_UPLOAD_SIZE=1024,
        MAX_FILES_PER_TASK=3,
        ALLOWED_ORIGINS="http://localhost:3000",
        ENVIRONMENT="test",
        LOG_LEVEL="WARNING",
        REMINDER_ENABLED=False,
    )


@pytest.fixture
async def app(settings: Settings) -> AsyncIterator[FastAPI]:
    test_app = create_app(settings)
    async with lifespan(test_app):
        yield test_app


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ---------------------------------------------------------------------------
# Accounts. Each fixture returns {"id", "email", "headers"}.
# ---------------------------------------------------------------------------
@pytest.fixture
async def alice(client: AsyncClient) -> dict[str, Any]:
    return await register(client, "alice@x.com")


@pytest.fixture
async def bob(client: AsyncClient) -> dict[str, Any]:
    return await register(client, "bob@x.com")


@pytest.fixture
async def supporter(app: FastAPI, client: AsyncClient) -> dict[str, Any]:
    account = await register(client, "sam@x.com")
    await set_role(app, account["email"], Role.SUPPORTER)
    return account


@pytest.fixture
async def admin(app: FastAPI, client: AsyncClient) -> dict[str, Any]:
    account = await register(client, "root@x.com")
    await set_role(app, account["email"], Role.ADMIN)
    return account
