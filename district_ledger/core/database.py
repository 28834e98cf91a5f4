"""SQLModel database engine and session management."""
from sqlalchemy import event
from sqlmodel import SQLModel, create_engine, Session
from district_ledger.core.config import settings

# Import models so SQLModel.metadata knows about all tables
import district_ledger.models.master  # noqa: F401
import district_ledger.models.transaction  # noqa: F401


def make_engine(url: str = settings.DATABASE_URL):
    """
    Engine for the ledger database.

    SQLite connections get a busy timeout so concurrent writers queue instead
    of failing, WAL journaling for file databases, and enforced foreign keys
    (a bill can never point at a missing transaction).
    """
    is_sqlite = url.startswith("sqlite")
    connect_args = {"check_same_thread": False, "timeout": 30} if is_sqlite else {}
    eng = create_engine(url, connect_args=connect_args, echo=False)

    if is_sqlite:
        in_memory = url in ("sqlite://", "sqlite:///:memory:")

        @event.listens_for(eng, "connect")
        def _sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if not in_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    return eng


engine = make_engine()


def create_db_and_tables(bind=None) -> None:
    """Create all tables defined in SQLModel models."""
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    """FastAPI dependency: yields a SQLModel session."""
    with Session(engine) as session:
        yield session
