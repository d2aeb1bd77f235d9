import os
import tempfile

os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("UPLOADS_DIR", tempfile.mkdtemp(prefix="fieldops-uploads-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import fieldops.models  # noqa: F401
from fieldops.core.database import Base, get_db


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    testing_session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = testing_session()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture
def client(db_session, monkeypatch):
    from fieldops import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    def override_get_db():
        yield db_session

    main.app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(main.app) as test_client:
            yield test_client
    finally:
        main.app.dependency_overrides.clear()


@pytest.fixture
def avatars_tmp(tmp_path, monkeypatch):
    from fieldops.services import avatars

    directory = tmp_path / "avatars"
    monkeypatch.setattr(avatars, "avatars_dir", lambda: directory)
    return directory
