# PURPOSE: create the engine and a Session factory.

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import settings


def make_engine(db_url: str) -> Engine:
    """Build an engine; SQLite gets check_same_thread off and FK enforcement on."""
    is_sqlite = db_url.startswith("sqlite")
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    eng = create_engine(db_url, connect_args=connect_args)
    if is_sqlite:
        # Subtasks cascade with their task, tasks with their owner.
        @event.listens_for(eng, "connect")
        def _enable_foreign_keys(dbapi_conn, _record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return eng


engine = make_engine(settings.DATABASE_URL)

# SessionLocal: opened/closed per request in FastAPI and per call in the alert store
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base: parent class for all ORM models (tables)
Base = declarative_base()
