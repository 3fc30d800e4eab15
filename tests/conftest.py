"""Shared test fixtures and configuration for the portal backend tests."""
import pytest

from gladgrade.audit.schemas import AuditActor
from gladgrade.audit.services import AuditLogger
from gladgrade.database import Database


@pytest.fixture
async def database(tmp_path):
    """A Database over a fresh SQLite file with every table created."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def broken_database(tmp_path):
    """A Database whose every connection attempt fails."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'portal.db'}")
    yield db
    await db.dispose()


@pytest.fixture
def audit(database):
    return AuditLogger(database)


@pytest.fixture
def broken_audit(broken_database):
    return AuditLogger(broken_database)


@pytest.fixture
def manager():
    """A sales manager allowed to reassign prospects."""
    return AuditActor(user_id=4, user_email="miguel@gladgrade.com", user_name="Miguel", user_role="super_admin")


@pytest.fixture
def salesperson():
    return AuditActor(user_id=7, user_email="rita@gladgrade.com", user_name="Rita", user_role="sales_rep")


@pytest.fixture
def count_rows(database):
    """Return an async helper counting the rows of a table."""
    async def _count(table: str) -> int:
        result = await database.execute(f"SELECT COUNT(*) AS n FROM {table}")
        return result.rows[0]["n"]
    return _count
