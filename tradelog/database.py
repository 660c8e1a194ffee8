"""SQLModel database engine and session management."""

import logging

from sqlalchemy import inspect
from sqlmodel import SQLModel, create_engine, Session

from tradelog.config import settings

logger = logging.getLogger(__name__)

# SQLite needs check_same_thread=False; PostgreSQL does not
connect_args = {}
if settings.database_url.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(
    settings.database_url,
    echo=False,
    connect_args=connect_args,
)


def _run_migrations(bind=None):
    """Add the open-position lookup index to trade tables created without it."""
    from sqlalchemy import text

    bind = bind or engine
    inspector = inspect(bind)

    if "trade" not in inspector.get_table_names():
        return

    existing_indexes = {idx["name"] for idx in inspector.get_indexes("trade")}
    if "ix_trade_open_lookup" not in existing_indexes:
        logger.info("Migrating: creating ix_trade_open_lookup")
        with bind.connect() as conn:
            conn.execute(text(
                "CREATE INDEX ix_trade_open_lookup "
                "ON trade (owner_id, symbol, direction, status)"
            ))
            conn.commit()


def create_db_and_tables(bind=None):
    """Create all tables. Called on startup."""
    import tradelog.models  # noqa: F401  registers tables on the metadata

    bind = bind or engine
    SQLModel.metadata.create_all(bind)
    _run_migrations(bind)


def get_session() -> Session:
    """Dependency that yields a database session."""
    with Session(engine) as session:
        yield session
