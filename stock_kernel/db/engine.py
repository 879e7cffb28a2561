"""
Module: stock_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  Single point of database connection
    configuration for the stock kernel.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from services/, selectors/, domain/, or outer layers (except
    create_tables, which imports the model registry).

Invariants enforced:
    - Services never commit.  session_scope() owns commit-or-rollback, so a
      ledger append, the product update and the inventory aggregate update
      land together or not at all.
    - PostgreSQL (psycopg2) in production runs at READ COMMITTED with explicit
      row-level locking (FOR UPDATE) on product and inventory rows.
    - SQLite is supported for local runs and tests.  The pysqlite driver's
      own transaction handling is disabled so SAVEPOINTs behave.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory is called
      before init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stock_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _install_sqlite_transaction_fix(engine: Engine) -> None:
    """Let SQLAlchemy emit BEGIN itself so nested transactions work on SQLite."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create an engine for ``database_url`` without touching module state.

    In-memory SQLite URLs share a single connection (StaticPool) so every
    session sees the same database.
    """
    if database_url.startswith("sqlite"):
        kwargs: dict = {"echo": echo}
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
        engine = create_engine(database_url, **kwargs)
        _install_sqlite_transaction_fix(engine)
        return engine

    return create_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
) -> Engine:
    """
    Initialize the module-level engine and session factory.

    Preconditions: database_url is a valid SQLAlchemy URL (postgresql+psycopg2
        or sqlite).  A second call replaces the first engine.
    Postconditions: get_engine/get_session use this engine.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    _engine = build_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "pool_size": pool_size,
            "echo": echo,
        },
    )
    return _engine


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """Session factory for callers that need one session per thread."""
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, the session is committed and closed.
        On exception, the session is rolled back and closed and the
        exception is re-raised.

    Usage:
        with session_scope() as session:
            StockService(session, clock).add_stock(owner_id, product_id, 10)
    """
    session = get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """
    Create all tables defined by the stock kernel models.

    Preconditions: Engine initialized (or passed explicitly).
    Postconditions: All tables exist in the database.
    """
    from stock_kernel.db.base import Base
    from stock_kernel.models import import_all_models

    import_all_models()
    target = engine or get_engine()
    Base.metadata.create_all(target)
    logger.info(
        "tables_created",
        extra={"table_count": len(Base.metadata.tables)},
    )


def drop_tables(engine: Engine | None = None) -> None:
    """Drop all tables. Use with caution; primarily for testing."""
    from stock_kernel.db.base import Base
    from stock_kernel.models import import_all_models

    import_all_models()
    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """Reset the engine and session factory. Useful for test cleanup."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)


def is_postgres() -> bool:
    """Check if the current engine is PostgreSQL."""
    if _engine is None:
        return False
    return _engine.dialect.name == "postgresql"
