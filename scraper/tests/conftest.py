"""Shared pytest fixtures and configuration."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from urllib.parse import parse_qs

import httpx
import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

# Ensure the scraper package is importable
SCRAPER_ROOT = Path(__file__).resolve().parents[1]
if str(SCRAPER_ROOT) not in sys.path:
    sys.path.insert(0, str(SCRAPER_ROOT))

# Set required environment variables before any imports
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "development")

from portal_scraper.db import open_database  # noqa: E402
from portal_scraper.intel import IntelError  # noqa: E402
from portal_scraper.models import PortalDetails  # noqa: E402

RDM_URL = "https://rdm.example.test"

PORTAL_TABLE_DDL = """
CREATE TABLE {table} (
    id VARCHAR(35) NOT NULL PRIMARY KEY,
    lat DOUBLE NOT NULL DEFAULT 0,
    lon DOUBLE NOT NULL DEFAULT 0,
    name VARCHAR(128) NULL,
    url VARCHAR(200) NULL
)
"""


def insert_rows(engine, table: str, rows) -> None:
    """Insert ``(id, name, url)`` or ``(id, name, url, lat)`` tuples."""
    with engine.begin() as conn:
        for row in rows:
            portal_id, name, url, *rest = row
            conn.execute(
                text(f"INSERT INTO {table} (id, name, url, lat) VALUES (:id, :name, :url, :lat)"),
                {"id": portal_id, "name": name, "url": url, "lat": rest[0] if rest else 0},
            )


def fetch_rows(engine, table: str) -> dict[str, tuple[str | None, str | None]]:
    with engine.connect() as conn:
        result = conn.execute(text(f"SELECT id, name, url FROM {table}"))
        return {row[0]: (row[1], row[2]) for row in result}


class FakeIntel:
    """Stands in for IntelClient; records every lookup."""

    def __init__(self, details: dict[str, tuple[str, str]] | None = None, failing: set[str] | None = None):
        self.details = details or {}
        self.failing = failing or set()
        self.calls: list[str] = []

    def get_portal_details(self, guid: str) -> PortalDetails:
        self.calls.append(guid)
        if guid in self.failing or guid not in self.details:
            raise IntelError(f"HTTP 429 for {guid}")
        name, url = self.details[guid]
        return PortalDetails(guid=guid, name=name, url=url)


class FakeRdm:
    """Minimal RDM console: sets CSRF-TOKEN on GET /login and records requests."""

    def __init__(self, token: str | None = "abc", cookie_name: str = "CSRF-TOKEN", fail: dict | None = None):
        self.token = token
        self.cookie_name = cookie_name
        self.fail = fail or {}
        self.requests: list[httpx.Request] = []

    def posts(self) -> list[tuple[str, dict[str, list[str]], str | None]]:
        return [
            (r.url.path, parse_qs(r.content.decode()), r.headers.get("referer"))
            for r in self.requests
            if r.method == "POST"
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key in self.fail:
            return httpx.Response(self.fail[key])
        if key == ("GET", "/login"):
            headers = []
            if self.token is not None:
                headers.append(("set-cookie", f"{self.cookie_name}={self.token}; Path=/"))
            headers.append(("set-cookie", "SESSION-TOKEN=s1; Path=/; HttpOnly"))
            return httpx.Response(200, headers=headers, text="<form></form>")
        if key == ("POST", "/login"):
            return httpx.Response(302, headers={"location": f"{RDM_URL}/dashboard"})
        if key == ("GET", "/dashboard"):
            return httpx.Response(200, text="dashboard")
        if key == ("POST", "/dashboard/utilities"):
            return httpx.Response(200, text="cleared")
        return httpx.Response(404)


@pytest.fixture
def engine():
    """In-memory SQLite database holding empty pokestop and gym tables."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    with engine.begin() as conn:
        for table in ("pokestop", "gym"):
            conn.execute(text(PORTAL_TABLE_DDL.format(table=table)))
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    with open_database(engine=engine) as database:
        yield database


@pytest.fixture
def fake_intel():
    return FakeIntel()


@pytest.fixture
def portal_env(monkeypatch):
    """Start from an environment holding none of the job's variables."""
    for name in (
        "DATABASE_URL",
        "USERNAME",
        "PASSWORD",
        "COOKIES",
        "RDM_URL",
        "RDM_USERNAME",
        "RDM_PASSWORD",
        "ENVIRONMENT",
        "LOG_LEVEL",
        "INTEL_THROTTLE",
        "INTEL_REQUEST_INTERVAL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
