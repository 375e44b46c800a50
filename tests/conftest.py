"""Shared fixtures: a seeded temporary SQLite database and the engine on top."""

import pytest
import pytest_asyncio

from clinic_scheduler.core.scheduling.engine import SchedulingEngine
from clinic_scheduler.core.scheduling.store import SqlAppointmentStore
from clinic_scheduler.infra.database import Database
from clinic_scheduler.infra.directory import Directory
from clinic_scheduler.seed import seed_directory
from tests.fakes import CLINIC_INFO


@pytest_asyncio.fixture
async def database(tmp_path):
    """Seeded SQLite database in a temp file."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'clinic.db'}")
    await db.init_db()
    await seed_directory(db)
    yield db
    await db.close()


@pytest.fixture
def store(database):
    return SqlAppointmentStore(database)


@pytest.fixture
def engine(store):
    return SchedulingEngine(store)


@pytest.fixture
def directory(database):
    return Directory(database, CLINIC_INFO)
