"""pytest configuration for path management and shared fixtures."""
import os
import sys
import tempfile
from pathlib import Path

import pytest

# Ensure the project root is available on sys.path so tests can import the barbaros package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Keep logs, badges and the default database out of the working tree.
os.environ.setdefault("BARBAROS_HOME", tempfile.mkdtemp(prefix="barbaros-tests-"))

from barbaros.core.badge_codec import BadgeCodec  # noqa: E402
from barbaros.database.db_manager import DatabaseManager  # noqa: E402
from barbaros.services.auth_service import Identity  # noqa: E402


@pytest.fixture
def db(tmp_path):
    manager = DatabaseManager(tmp_path / "test.db").open()
    manager.initialize_db()
    yield manager
    manager.close()


@pytest.fixture
def codec(tmp_path):
    return BadgeCodec(tmp_path / "badges")


@pytest.fixture
def staff():
    return Identity(user_id="a" * 24, role="owner", user_type="admin", name="Owner", email="owner@example.com")


@pytest.fixture
def client_identity():
    return Identity(user_id="b" * 24, role="client", user_type="client", name="Jane Doe", email="jane@example.com")
