from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from simbook.config import DATABASE_URL, SQLITE_BUSY_TIMEOUT
from simbook.models import Base

# Session.connection(execution_options=WRITE_TRANSACTION) marks a writer.
WRITE_TRANSACTION = {"sqlite_begin": "IMMEDIATE"}


def make_engine(url: str = DATABASE_URL, **kwargs) -> Engine:
    """
    Build an engine whose transactions serialize writers.

    SQLite: pysqlite's implicit BEGIN is switched off. Connections carrying
    the WRITE_TRANSACTION execution options open with BEGIN IMMEDIATE, so the
    writer lock is taken before the first read; everything else opens a
    deferred BEGIN and reads alongside an open writer. PostgreSQL and friends get
    SERIALIZABLE isolation instead.
    """
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("timeout", SQLITE_BUSY_TIMEOUT)
        connect_args.setdefault("check_same_thread", False)
        engine = create_engine(url, echo=False, connect_args=connect_args, **kwargs)

        @event.listens_for(engine, "connect")
        def _disable_implicit_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin(conn):
            mode = conn.get_execution_options().get("sqlite_begin", "DEFERRED")
            conn.exec_driver_sql(f"BEGIN {mode}")

        return engine

    kwargs.setdefault("isolation_level", "SERIALIZABLE")
    return create_engine(url, echo=False, **kwargs)


engine = make_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db(bind: Engine = None):
    """Create all tables."""
    Base.metadata.create_all(bind=bind or engine)


def get_db():
    """FastAPI dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
