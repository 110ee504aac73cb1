"""
Module: checkin_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management
    and transactional scope. Single point of database connection
    configuration for the persistence adapter.
Architecture position: Kernel > DB. May import from db/base.py
    (create_tables/drop_tables also import models/).
Invariants enforced:
    - Any SQLAlchemy URL is accepted. Pool arguments apply to server
      databases only; SQLite uses the dialect's default pool.
Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory is called
      before init_engine_from_url().
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from checkin_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
) -> Engine:
    """
    Initialize the SQLAlchemy engine from a database URL.

    A second call replaces the first engine.

    Args:
        database_url: SQLAlchemy URL (postgresql://..., sqlite:///...).
        echo: If True, log all SQL statements.
        pool_size: Connections kept in the pool (server databases).
        max_overflow: Connections beyond pool_size (server databases).
        pool_pre_ping: Test connections before use.
    """
    global _engine, _SessionFactory
    url = make_url(database_url)
    kwargs: dict = {"echo": echo, "pool_pre_ping": pool_pre_ping}
    if url.get_backend_name() != "sqlite":
        kwargs.update(pool_size=pool_size, max_overflow=max_overflow)

    _engine = create_engine(url, **kwargs)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)
    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": url.get_backend_name(),
            "echo": echo,
        },
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Commits on normal exit; rolls back and re-raises on exception.

    Usage:
        with session_scope() as session:
            writer = InvoiceWriter(session, clock)
            writer.create_invoice(submission)
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


def create_tables() -> None:
    """Create every table registered on ``Base.metadata``."""
    import checkin_kernel.models  # noqa: F401
    from checkin_kernel.db.base import Base

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables() -> None:
    import checkin_kernel.models  # noqa: F401
    from checkin_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())
    logger.info("tables_dropped")


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
