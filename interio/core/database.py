"""
Database connection and session management.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from interio.core.config import get_database_url
from interio.core.logging_config import get_logger
from interio.core.models import Base


logger = get_logger(__name__)

DATABASE_URL = get_database_url()
engine = None

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False  # Prevent detached instance errors
)


def configure_database(url: str = None):
    """Bind the session factory to a new engine, e.g. an in-memory test database."""
    global DATABASE_URL, engine

    DATABASE_URL = url or get_database_url()
    options = {"echo": False}
    if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        # one shared connection so every session sees the same in-memory tables
        options.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)

    if engine is not None:
        engine.dispose()
    engine = create_engine(DATABASE_URL, **options)
    SessionLocal.configure(bind=engine)
    return engine


configure_database(DATABASE_URL)


def get_db_session():
    """Get a database session."""
    return SessionLocal()


def init_db():
    """Initialize database tables."""
    logger.info(f"Initializing database at: {DATABASE_URL}")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully.")


def drop_db():
    Base.metadata.drop_all(bind=engine)


def get_db_info():
    """Get database information for debugging."""
    return {
        "database_url": DATABASE_URL,
        "dialect": engine.dialect.name,
        "tables": sorted(Base.metadata.tables),
    }
