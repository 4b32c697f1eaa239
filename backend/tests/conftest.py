"""Pytest configuration and fixtures for PalletTrack tests.

Each test gets its own file-backed SQLite database under tmp_path, so that
tests which open several connections see real cross-connection locking.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from palletrack.config import Settings
from palletrack.database import Database
from palletrack.main import create_app
from palletrack.models.lot import Lot
from palletrack.services import ledger


# ── Test Database Setup ──────────────────────────────────────────

@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    db_path = tmp_path / "palletrack_test.db"
    return Settings(
        environment="test",
        database_url=f"sqlite+aiosqlite:///{db_path}",
        database_url_sync=f"sqlite:///{db_path}",
        create_tables_on_startup=False,
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def database(test_settings: Settings) -> AsyncGenerator[Database, None]:
    """Create the schema on a fresh database and dispose it afterwards."""
    db = Database.from_settings(test_settings)
    await db.create_all()

    yield db

    await db.dispose()


@pytest_asyncio.fixture
async def client(test_settings: Settings, database: Database) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to an app that shares the test database."""
    app = create_app(test_settings)
    # ASGITransport does not run the lifespan
    app.state.database = database

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest_asyncio.fixture
async def test_lot(database: Database) -> Lot:
    """An intake of 100 pallets for ACME."""
    async with database.unit_of_work() as db:
        return await ledger.record_intake(db, "ACME", 100, "receiver")


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Service-level tests")
    config.addinivalue_line("markers", "api: HTTP tests through the FastAPI app")
    config.addinivalue_line("markers", "integration: Multi-step scenarios across services")
    config.addinivalue_line("markers", "slow: Concurrency tests with several connections")
