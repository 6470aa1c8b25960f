"""Pytest configuration.

Settings are read from the environment at import time, so the data directory,
API keys and reaper interval are pinned here before anything from htmlhost is
imported.
"""

import os
import tempfile

os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="htmlhost-tests-")
os.environ["API_KEYS"] = "test-key,other-key"
os.environ["REAPER_INTERVAL_SECONDS"] = "0"
# 测试中使用最低成本的 bcrypt
os.environ["BCRYPT_ROUNDS"] = "4"

import io
import stat
import zipfile
from collections.abc import Generator
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlmodel import Session, SQLModel

from htmlhost import models  # noqa: F401
from htmlhost.api.deps import get_clock, get_db, get_uploads_dir
from htmlhost.core.db import make_engine
from htmlhost.main import app

API_KEY = "test-key"
OTHER_API_KEY = "other-key"


class FakeClock:
    """Callable clock whose time only moves when a test says so."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def build_zip(
    files: dict[str, bytes | str],
    *,
    symlinks: dict[str, str] | None = None,
) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in files.items():
            zf.writestr(zipfile.ZipInfo(name), content)
        for name, target in (symlinks or {}).items():
            info = zipfile.ZipInfo(name)
            info.external_attr = (stat.S_IFLNK | 0o777) << 16
            zf.writestr(info, target)
    return buffer.getvalue()


def mark_encrypted(data: bytes) -> bytes:
    """Set the encryption flag on every central directory entry."""
    patched = bytearray(data)
    start = patched.find(b"PK\x01\x02")
    while start != -1:
        patched[start + 8] |= 0x1
        start = patched.find(b"PK\x01\x02", start + 4)
    return bytes(patched)


@pytest.fixture
def engine(tmp_path: Path) -> Generator[Engine, None, None]:
    test_engine = make_engine(f"sqlite:///{tmp_path / 'hosting.db'}")
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session(engine: Engine) -> Generator[Session, None, None]:
    with Session(engine) as s:
        yield s


@pytest.fixture
def uploads_dir(tmp_path: Path) -> Path:
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 15, 12, 0, 0))


@pytest.fixture
def client(
    engine: Engine, uploads_dir: Path, clock: FakeClock
) -> Generator[TestClient, None, None]:
    def override_db() -> Generator[Session, None, None]:
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_uploads_dir] = lambda: uploads_dir
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def api_headers() -> dict[str, str]:
    return {"X-API-Key": API_KEY}


@pytest.fixture
def other_api_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {OTHER_API_KEY}"}
