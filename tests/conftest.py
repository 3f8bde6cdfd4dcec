"""Pytest configuration and fixtures."""
import os
import tempfile

# Settings are cached on first import; keep logs and the default database out of the repo
_SCRATCH = tempfile.mkdtemp(prefix="meme_exchange_tests_")
os.environ.setdefault("LOG_DIR", os.path.join(_SCRATCH, "logs"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_SCRATCH, 'exchange.db')}")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("TRADE_RETRY_BASE_DELAY", "0")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from meme_exchange.core.database import init_db
from meme_exchange.models.user import User
from meme_exchange.services import coin_service


def make_user(db, username: str, is_admin: bool = False) -> User:
    """Insert a user directly, skipping password hashing."""
    user = User(
        email=f"{username}@example.com",
        username=username,
        hashed_password="not-a-real-hash",
        is_active=True,
        is_admin=is_admin,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def alice(db) -> User:
    return make_user(db, "alice")


@pytest.fixture
def bob(db) -> User:
    return make_user(db, "bob")


@pytest.fixture
def coin(db, alice):
    """A freshly created coin with the default curve parameters."""
    return coin_service.create_coin(db, alice, name="Doge Moon", symbol="dmoon")


@pytest.fixture
def small_coin(db, alice):
    """A coin with a 1,000 token supply so supply bounds are reachable."""
    coin = coin_service.create_coin(db, alice, name="Tiny", symbol="TINY")
    coin.total_supply = 1000
    db.commit()
    db.refresh(coin)
    return coin
