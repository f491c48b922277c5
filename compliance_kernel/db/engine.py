"""
Module: compliance_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  This is the single point of database
    connection configuration for the kernel.
Architecture position: Kernel > DB.  May import from db/base.py and db/triggers.py.
    MUST NOT import from services/, domain/, or outer layers (except for
    create_tables/drop_tables which import models and triggers).

Invariants enforced:
    - PostgreSQL (production) runs at READ COMMITTED with explicit row-level
      locking (FOR UPDATE) where stronger isolation is needed.
    - SQLite (tests/dev) is opened with check_same_thread=False so a session
      factory may be shared across worker threads.
    - Every session_scope() either commits in full or rolls back in full.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory called before
      init_engine_from_url().
    - OperationalError on deadlock during trigger installation (retried up to 3x).
"""

import atexit
import time
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from compliance_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Initialize the SQLAlchemy engine from a database URL.

    Postconditions: Module-level _engine and _SessionFactory are initialized.
        A second call replaces the first engine (the old one is disposed).

    Args:
        database_url: postgresql:// or sqlite:// URL.
        echo: If True, log all SQL statements.
        pool_size, max_overflow, pool_pre_ping, pool_timeout, pool_recycle:
            QueuePool tuning; applied to PostgreSQL only.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    dialect = make_url(database_url).get_backend_name()

    if dialect == "sqlite":
        _engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )
    else:
        _engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": dialect,
            "pool_size": pool_size if dialect != "sqlite" else None,
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
    """
    Get the session factory for creating sessions.

    The access gate holds the factory, not a session: every gate call opens
    its own short transactions, which is what lets concurrent callers run
    independently.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, session is committed and closed.
        On exception, session is rolled back and closed.  The exception
        is re-raised to the caller.

    Args:
        factory: Session factory to draw from; defaults to the module factory.

    Usage:
        with session_scope() as session:
            session.add(entity)
    """
    session = factory() if factory is not None else get_session()
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


def create_tables(install_triggers: bool = True) -> None:
    """
    Create all kernel tables and, on PostgreSQL, install the triggers.

    Args:
        install_triggers: If True (and the backend is PostgreSQL), install
            database-level immutability triggers.

    Raises:
        RuntimeError: If engine is not initialized.
        OperationalError: If trigger installation fails after 3 retries.
    """
    from compliance_kernel.db.base import Base
    from compliance_kernel.models import import_all_models

    from compliance_kernel.services.sequence_service import SequenceService

    engine = get_engine()
    import_all_models()
    Base.metadata.create_all(engine)

    with session_scope() as session:
        SequenceService(session).initialize_sequences()

    if install_triggers and is_postgres():
        from compliance_kernel.db.triggers import install_immutability_triggers

        max_retries = 3
        for attempt in range(max_retries):
            try:
                install_immutability_triggers(engine)
                break
            except OperationalError as exc:
                if "deadlock" in str(exc).lower() and attempt < max_retries - 1:
                    logger.warning(
                        "trigger_install_deadlock_retry",
                        extra={"attempt": attempt + 1, "max_retries": max_retries},
                    )
                    engine.dispose()
                    time.sleep(0.5 * (attempt + 1))
                else:
                    raise


def drop_tables() -> None:
    """
    Drop all tables. Use with caution - primarily for testing.

    Triggers are dropped with their tables.
    """
    from compliance_kernel.db.base import Base
    from compliance_kernel.models import import_all_models

    engine = get_engine()
    import_all_models()
    Base.metadata.drop_all(engine)


def reset_engine() -> None:
    """Dispose the engine and forget the session factory. Used by test teardown."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    """Dispose the engine on process exit to release all pooled connections."""
    if _engine is not None:
        try:
            _engine.dispose()
        except Exception:
            logger.debug("engine_dispose_failed_at_exit", exc_info=True)


atexit.register(_atexit_dispose)


def is_postgres() -> bool:
    """Check if the current engine is PostgreSQL."""
    if _engine is None:
        return False
    return _engine.dialect.name == "postgresql"
