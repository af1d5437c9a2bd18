"""Database connection and session management for the SQL snapshot store."""

from typing import Any

from sqlalchemy import create_engine, event, func, inspect, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from villagewars.config import Settings, get_settings
from villagewars.models import Base


def _configure_sqlite_wal(
    dbapi_connection: Any, connection_record: Any  # noqa: ARG001
) -> None:
    """Configure SQLite connections for WAL journaling and foreign keys.

    Args:
        dbapi_connection: The DBAPI connection
        connection_record: Connection record (required by SQLAlchemy event API)
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(settings: Settings | None = None, *, url: str | None = None) -> Engine:
    """Create and configure a database engine.

    Args:
        settings: Settings to read connection options from (defaults to the cached settings)
        url: Explicit database URL overriding ``settings.database_url``

    Returns:
        Engine: Configured SQLAlchemy engine
    """
    settings = settings or get_settings()
    database_url = url or settings.database_url

    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=settings.database_echo,
            pool_pre_ping=True,
        )
        event.listen(engine, "connect", _configure_sqlite_wal)
    else:
        engine = create_engine(
            database_url,
            echo=settings.database_echo,
            pool_pre_ping=True,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_recycle=settings.database_pool_recycle,
            pool_timeout=settings.database_pool_timeout,
        )

    return engine


_engine: Engine | None = None
_SessionLocal: sessionmaker[Session] | None = None


def get_engine() -> Engine:
    """Get or create the global database engine."""
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = create_db_engine()
    return _engine


def get_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Return a session factory bound to ``engine`` or to the global engine."""
    global _SessionLocal  # noqa: PLW0603
    if engine is not None:
        return sessionmaker(autocommit=False, autoflush=False, bind=engine)
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def init_db(engine: Engine | None = None) -> None:
    """Create every table that does not exist yet."""
    Base.metadata.create_all(bind=engine or get_engine())


def check_database_health(engine: Engine | None = None) -> bool:
    """Return True when the database answers a trivial query."""
    try:
        with (engine or get_engine()).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False


def get_table_names(engine: Engine | None = None) -> list[str]:
    """List the tables present in the database."""
    inspector = inspect(engine or get_engine())
    return inspector.get_table_names()


def count_rows(session: Session, table_name: str) -> int:
    """Count rows in a specific table.

    Raises:
        ValueError: If table_name is not a table of the snapshot schema
    """
    if table_name not in Base.metadata.tables:
        valid_tables = sorted(Base.metadata.tables.keys())
        raise ValueError(
            f"Invalid table name: {table_name}. Valid tables: {', '.join(valid_tables)}"
        )

    table = Base.metadata.tables[table_name]
    result = session.execute(select(func.count()).select_from(table)).scalar()
    return result or 0
