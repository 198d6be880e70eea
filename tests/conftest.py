"""Shared fixtures: an app wired to a temporary SQLite database and local storage."""
import sqlite3
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from upload_gallery.config import Settings
from upload_gallery.main import create_app

FROZEN_MS = 1_700_000_000_000


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "gallery.db"


@pytest.fixture
def settings(tmp_path: Path, db_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{db_path}",
        STORAGE_TYPE="local",
        STORAGE_BUCKET="uploads",
        FILE_STORAGE_PATH=str(tmp_path / "storage"),
    )


@pytest.fixture
def bucket_dir(settings: Settings) -> Path:
    return Path(settings.FILE_STORAGE_PATH) / settings.STORAGE_BUCKET


@pytest.fixture
def client(settings: Settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def frozen_clock(monkeypatch):
    """Make every storage key use the same millisecond."""
    from upload_gallery.services import storage_keys

    monkeypatch.setattr(storage_keys, "_now_ms", lambda: FROZEN_MS)
    return FROZEN_MS


def count_rows(db_path: Path) -> int:
    conn = sqlite3.connect(db_path)
    try:
        return conn.execute("SELECT COUNT(*) FROM files").fetchone()[0]
    finally:
        conn.close()


@pytest.fixture
def lenient_client(settings: Settings):
    """Client that returns 500 responses instead of re-raising server errors."""
    with TestClient(create_app(settings), raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def fail_commit(monkeypatch):
    """Make the Nth AsyncSession.commit() of the test raise OperationalError."""
    from sqlalchemy.exc import OperationalError
    from sqlalchemy.ext.asyncio import AsyncSession

    original_commit = AsyncSession.commit

    def install(call_number: int) -> None:
        calls = {"count": 0}

        async def failing_commit(self):
            calls["count"] += 1
            if calls["count"] == call_number:
                raise OperationalError("COMMIT", {}, Exception("database is locked"))
            return await original_commit(self)

        monkeypatch.setattr(AsyncSession, "commit", failing_commit)

    return install
