"""Database engine setup for the on-disk project index (index.db)."""

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

if TYPE_CHECKING:
    from codeshell.config import Settings

# Lazy engine initialization - engine created on first use
_index_engine: Engine | None = None
_index_session_factory: sessionmaker[Session] | None = None


def _enable_foreign_keys(dbapi_conn: object, connection_record: object) -> None:
    """Enable foreign key constraints for SQLite connections."""
    cursor = dbapi_conn.cursor()  # type: ignore[union-attr]
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_index_engine(db_path: Path) -> Engine:
    """Create a SQLite engine with proper configuration."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        pool_pre_ping=True,
    )
    event.listen(engine, "connect", _enable_foreign_keys)
    return engine


def get_index_engine(settings: "Settings | None" = None) -> Engine:
    """Get or create the index engine."""
    global _index_engine
    if _index_engine is None:
        if settings is None:
            from codeshell.config import get_settings

            settings = get_settings()
        settings.ensure_storage_dir()
        _index_engine = create_index_engine(settings.index_db_path)
    return _index_engine


def get_index_session_factory(settings: "Settings | None" = None) -> sessionmaker[Session]:
    """Get or create the index session factory."""
    global _index_session_factory
    if _index_session_factory is None:
        engine = get_index_engine(settings)
        _index_session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    return _index_session_factory


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Yield a session that commits on success and rolls back on error."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_index_db(settings: "Settings | None" = None) -> sessionmaker[Session]:
    """Create the index tables and return the session factory."""
    from codeshell.db.tables import IndexBase

    engine = get_index_engine(settings)
    IndexBase.metadata.create_all(engine)
    return get_index_session_factory(settings)


def reset_engines() -> None:
    """Reset engine caches (useful for testing)."""
    global _index_engine, _index_session_factory

    if _index_engine is not None:
        _index_engine.dispose()
        _index_engine = None
    _index_session_factory = None
