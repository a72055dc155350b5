# Test configuration

import json
import os
import sys

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from duckit.catalog.database import seed_role_defaults  # noqa: E402
from duckit.catalog.models import Base  # noqa: E402
from duckit.catalog.store import SqlMetadataStore  # noqa: E402
from duckit.config.settings import Settings  # noqa: E402
from duckit.engine.duckdb_engine import DuckDBEngine  # noqa: E402

SERVICE_URL = "http://storage.test"


@pytest.fixture
def test_settings(tmp_path):
    """Override settings for testing"""
    return Settings(
        database_url="sqlite:///:memory:",
        storage_path=str(tmp_path / "storage"),
        engine_workdir=str(tmp_path / "engine"),
        service_base_url=SERVICE_URL,
        service_api_key="test-key",
    )


@pytest.fixture
def engine(tmp_path):
    """DuckDB engine with a private scratch directory."""
    eng = DuckDBEngine(workdir=str(tmp_path / "engine"))
    yield eng
    eng.close()


@pytest.fixture
def write_file(tmp_path):
    """Write text to a file under tmp_path and return its path."""
    def _write(name: str, content: str):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def session_factory():
    """In-memory SQLite catalog seeded with role defaults."""
    db_engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=db_engine)
    factory = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)

    with factory() as db:
        seed_role_defaults(db, "duckit")
        db.commit()

    yield factory
    db_engine.dispose()


@pytest.fixture
def sql_store(session_factory):
    return SqlMetadataStore(session_factory=session_factory, app_name="duckit")


class FakeService:
    """
    In-process stand-in for the remote storage service.

    Records every request and answers token, upload, status and delete calls.
    """

    def __init__(self):
        self.requests = []
        self.status = {
            "status": "ok", "available_mb": 5000, "usage_percent": 10,
            "file_count": 3, "can_upload": True, "max_file_size_mb": 150,
        }
        self.status_code = {"upload-token": 200, "upload": 200, "status": 200, "delete": 200}
        self.upload_body = None
        self.uploaded = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/upload-token":
            body = json.loads(request.content)
            if self.status_code["upload-token"] != 200:
                return httpx.Response(self.status_code["upload-token"], text="denied")
            return httpx.Response(200, json={
                "token": "tok-123",
                "filename": body["filename"],
                "storage_tier": body["storage_tier"],
                "expires_in": 300,
                "upload_url": "/upload/tok-123",
                "max_size_mb": 150,
            })

        if path.startswith("/upload/"):
            content = request.read()
            self.uploaded.append(content)
            if self.status_code["upload"] != 200:
                return httpx.Response(
                    self.status_code["upload"], json=self.upload_body or {"detail": "rejected"})
            if self.upload_body is not None:
                return httpx.Response(200, json=self.upload_body)
            return httpx.Response(200, json={
                "download_url": f"{SERVICE_URL}/files/abc123",
                "filename": "abc123_artifact",
                "expires_in_hours": 24,
            })

        if path == "/status":
            if self.status_code["status"] != 200:
                return httpx.Response(self.status_code["status"], json={"error": "down"})
            return httpx.Response(200, json=self.status)

        if path == "/delete":
            return httpx.Response(self.status_code["delete"], json={"deleted": True})

        return httpx.Response(404, json={"error": "not found"})

    def paths(self):
        return [r.url.path for r in self.requests]


@pytest.fixture
def fake_service():
    return FakeService()


@pytest.fixture
def http_client(fake_service):
    client = httpx.Client(transport=httpx.MockTransport(fake_service.handler))
    yield client
    client.close()
