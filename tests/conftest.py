"""
Shared pytest fixtures.

The application reads its settings at import time, so the database URL and
log file are pointed at throw-away locations here, before any test module
imports the package.
"""
import os
import sys
import tempfile

# Ensure the package is importable when running pytest from the project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

_tmp_db = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp_db.close()
os.environ["DATABASE_URL"] = f"sqlite:///{_tmp_db.name}"
os.environ["LOG_FILE"] = ""
os.environ["LEDGER_LOG_FILE"] = ""

import pytest  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

import district_ledger.models  # noqa: E402,F401 – registers tables
from district_ledger.engine import vendors  # noqa: E402


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def vendor(session):
    return vendors.register_vendor(
        session,
        vendor_name="Sri Murugan Traders",
        district="Coimbatore",
        business_type="Hardware",
        reg_year="2025",
        mobile="9876543210",
    )


def pytest_sessionfinish(session, exitstatus):
    try:
        os.unlink(_tmp_db.name)
    except OSError:
        pass
