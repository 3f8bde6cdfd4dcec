"""Database connection and session management."""
import os
from datetime import datetime
import pytz
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from meme_exchange.core.config import get_settings

settings = get_settings()

TZ = pytz.timezone(settings.timezone)


def tz_now():
    """Get current datetime in the configured timezone.

    Returns:
        datetime: Current timezone-aware datetime
    """
    return datetime.now(TZ)

# Create SQLAlchemy engine
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if "sqlite" in settings.database_url else {}
)

# Create SessionLocal class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create Base class for models
Base = declarative_base()


def get_db():
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _ensure_sqlite_directory(database_url: str):
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        directory = os.path.dirname(url.database)
        if directory:
            os.makedirs(directory, exist_ok=True)


def init_db(bind=None):
    """Create all tables.

    Args:
        bind: Engine to create tables on (defaults to the configured engine)
    """
    # Import models so they register with Base.metadata
    from meme_exchange.models import coin, database, user  # noqa: F401

    if bind is None:
        _ensure_sqlite_directory(settings.database_url)
        bind = engine

    Base.metadata.create_all(bind=bind)
