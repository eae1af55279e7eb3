"""
Database configuration and session management
"""
import time
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from boost_guard.core.config import get_settings
from boost_guard.core.logging_config import LoggingConfig
from boost_guard.core.metrics import db_queries_total, db_query_duration_seconds

logger = LoggingConfig.get_logger(__name__)

# Lazy initialization - engine is created on first use
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None

Base = declarative_base()


def setup_db_metrics(engine: Engine):
    """Attach query counters to an engine"""

    @event.listens_for(engine, "before_cursor_execute")
    def receive_before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault('query_start_time', []).append(time.time())

    @event.listens_for(engine, "after_cursor_execute")
    def receive_after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if not conn.info.get('query_start_time'):
            return
        duration = time.time() - conn.info['query_start_time'].pop()
        words = statement.strip().split()
        operation = words[0].lower() if words else "unknown"
        db_queries_total.labels(operation=operation).inc()
        db_query_duration_seconds.labels(operation=operation).observe(duration)


def build_engine(url: str, **kwargs) -> Engine:
    """Create an engine with dialect-appropriate options"""
    settings = get_settings()
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_size", settings.database_pool_size)
        kwargs.setdefault("max_overflow", settings.database_max_overflow)
        kwargs.setdefault("pool_pre_ping", True)
    engine = create_engine(url, echo=settings.log_sqlalchemy, **kwargs)
    setup_db_metrics(engine)
    return engine


def get_engine() -> Engine:
    """Get or create database engine (lazy initialization)"""
    global _engine
    if _engine is None:
        _engine = build_engine(get_settings().database_url)
    return _engine


def get_session_local() -> sessionmaker:
    """Get or create session factory (lazy initialization)"""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def init_db(engine: Optional[Engine] = None):
    """Create ledger tables if they do not exist"""
    import boost_guard.models  # noqa: F401 - register models with Base.metadata

    engine = engine or get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema ready", extra={"dialect": engine.dialect.name})


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session
    """
    db = get_session_local()()
    try:
        yield db
    finally:
        db.close()
