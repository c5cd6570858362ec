"""
Database engine, session factory and declarative base
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from order_saga.config import settings


def build_engine(database_url: str):
    """Create an engine; SQLite connections are shared across worker threads"""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


engine = build_engine(settings.DATABASE_URL)

# Session factory; every saga step commits on its own session
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for declarative ORM models
Base = declarative_base()


def get_db():
    """FastAPI dependency to get a DB session for a single request"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """FastAPI dependency for handlers that open their own sessions (stale sweep)"""
    return SessionLocal


def init_db(bind=None):
    """Create tables for every registered model"""
    # Import models so they are registered on Base.metadata
    from order_saga import models  # noqa: F401
    
    Base.metadata.create_all(bind=bind or engine)
