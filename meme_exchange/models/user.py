"""Trader accounts."""
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from meme_exchange.core.database import Base, tz_now


class User(Base):
    """An account that can create coins and trade them.

    ``is_admin`` accounts may edit and deactivate any coin.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    username = Column(String(50), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    wallet_address = Column(String(128), nullable=True)  # Audit only, never settled
    is_active = Column(Boolean, default=True, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=tz_now)

    def __repr__(self):
        return f"<User(username='{self.username}', admin={self.is_admin})>"
