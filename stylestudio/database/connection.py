"""
Database engine and session factories
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from stylestudio.config.settings import settings
from stylestudio.database.models import Base

IN_MEMORY_SQLITE_URLS = ("sqlite://", "sqlite:///:memory:")


def make_engine(database_url: str) -> Engine:
    """
    Build an engine for a database URL
    SQLite connections are shared between the event loop and the threadpool;
    an in-memory SQLite database lives on a single connection
    """
    options = {"echo": settings.DATABASE_ECHO, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    if database_url in IN_MEMORY_SQLITE_URLS:
        options["poolclass"] = StaticPool
    else:
        options["pool_recycle"] = 300
    return create_engine(database_url, **options)


def make_session_factory(bind: Engine) -> sessionmaker:
    # Rows are read after commit when records are built from them
    return sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


engine = make_engine(settings.DATABASE_URL)
SessionLocal = make_session_factory(engine)


def create_tables(bind: Engine = None):
    """Create all database tables"""
    Base.metadata.create_all(bind=bind or engine)


@asynccontextmanager
async def get_db_session(session_factory=None) -> AsyncGenerator[Session, None]:
    """Async context manager for database session"""
    db = (session_factory or SessionLocal)()
    try:
        yield db
    finally:
        db.close()


async def init_db():
    """Initialize database - create tables if they don't exist"""
    create_tables()
