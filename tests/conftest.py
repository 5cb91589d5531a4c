"""
Pytest configuration and shared fixtures for Drive Lifecycle tests.
"""
import os
import sys
from datetime import datetime, timezone
from typing import Generator
import pytest

# Settings and the engine are created at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Add project root to Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.main import app
from app.api.deps import get_session_factory
from app.db import get_db
from app.models import (
    Base,
    Backup,
    File,
    FileStatus,
    FileVersion,
    FileVersionStatus,
    Folder,
    FolderStatus,
)
from app.usage import UsageLedger


# Test Database Configuration
TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

USER_ID = "7c1e2f3a-0000-4000-8000-000000000001"


def no_sleep(seconds: float) -> None:
    """Stand-in for time.sleep so retry and pause paths run instantly."""


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db_session = TestingSessionLocal()
    try:
        yield db_session
    finally:
        db_session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db: Session):
    """Factory for code that opens its own sessions; shares the test database."""
    return TestingSessionLocal


@pytest.fixture
def job_options(session_factory) -> dict:
    """BatchRepairJob options that keep jobs on the test database and fast."""
    return {
        "session_factory": session_factory,
        "pause_seconds": 0,
        "sleep": no_sleep,
    }


@pytest.fixture
def ledger(session_factory) -> UsageLedger:
    return UsageLedger(session_factory, batch_size=2, pause_seconds=0, sleep=no_sleep)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database dependency overrides."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ============================================================================
# Entity factories
# ============================================================================

def utc(year: int, month: int, day: int, hour: int = 12) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


@pytest.fixture
def make_folder(db: Session):
    """Create and commit a folder."""
    def _make_folder(parent=None, user_id=USER_ID, status=FolderStatus.EXISTS, **kwargs):
        folder = Folder(
            parent_uuid=parent.uuid if parent is not None else None,
            user_id=user_id,
            status=status,
            **kwargs,
        )
        db.add(folder)
        db.commit()
        db.refresh(folder)
        return folder

    return _make_folder


@pytest.fixture
def make_file(db: Session):
    """Create and commit a file. A positive size gets a blob id unless given."""
    counter = {"n": 0}

    def _make_file(folder=None, size=1024, user_id=USER_ID, status=FileStatus.EXISTS, **kwargs):
        counter["n"] += 1
        if size > 0:
            kwargs.setdefault("network_file_id", f"net-{counter['n']}")
        file = File(
            folder_uuid=folder.uuid if folder is not None else None,
            user_id=user_id,
            size=size,
            status=status,
            **kwargs,
        )
        db.add(file)
        db.commit()
        db.refresh(file)
        return file

    return _make_file


@pytest.fixture
def make_version(db: Session):
    """Create and commit a file version."""
    counter = {"n": 0}

    def _make_version(file_id="file-1", size=512, user_id=USER_ID,
                      status=FileVersionStatus.EXISTS, **kwargs):
        counter["n"] += 1
        if size > 0:
            kwargs.setdefault("network_file_id", f"ver-{counter['n']}")
        version = FileVersion(
            file_id=file_id,
            user_id=user_id,
            size=size,
            status=status,
            **kwargs,
        )
        db.add(version)
        db.commit()
        db.refresh(version)
        return version

    return _make_version


@pytest.fixture
def make_backup(db: Session):
    def _make_backup(size, user_id=USER_ID):
        backup = Backup(user_id=user_id, size=size, network_file_id="backup-blob")
        db.add(backup)
        db.commit()
        return backup

    return _make_backup


@pytest.fixture
def folder_tree(make_folder, make_file):
    """
    Root folder with a chain of ``depth`` levels below it and one file per level.

    Returns (folders, files), root first.
    """
    def _folder_tree(depth=3, file_size=100):
        folders = [make_folder(plain_name="root")]
        files = [make_file(folders[0], size=file_size)]
        for level in range(1, depth + 1):
            folders.append(make_folder(folders[-1], plain_name=f"level-{level}"))
            files.append(make_file(folders[-1], size=file_size))
        return folders, files

    return _folder_tree
