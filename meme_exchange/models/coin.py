"""Meme coin model holding bonding curve parameters and state."""
from sqlalchemy import Column, Integer, BigInteger, String, Text, Boolean, DateTime, ForeignKey, CheckConstraint
from meme_exchange.core.database import Base, tz_now
from meme_exchange.core.types import DecimalType


class MemeCoin(Base):
    """Aggregate record for one tradable token.

    Curve parameters (``initial_price``, ``price_increment``,
    ``total_supply``, ``graduation_threshold``) are fixed at creation. Curve
    state is only mutated by the trading engine while it holds the coin's
    lock; ``version`` lets the ORM detect writers from other processes.
    """
    __tablename__ = "meme_coins"

    id = Column(Integer, primary_key=True, index=True)
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Pseudo mint address (no on-chain settlement)
    token_mint = Column(String(64), unique=True, nullable=False)

    # Display metadata
    token_name = Column(String(100), nullable=False)
    token_symbol = Column(String(20), nullable=False, index=True)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    twitter_url = Column(String, nullable=True)
    telegram_url = Column(String, nullable=True)
    website_url = Column(String, nullable=True)
    is_featured = Column(Boolean, default=False, nullable=False)

    # Curve parameters
    bonding_curve_type = Column(String(20), default="linear", nullable=False)
    initial_price = Column(DecimalType, nullable=False)
    price_increment = Column(DecimalType, nullable=False)
    total_supply = Column(BigInteger, nullable=False)
    graduation_threshold = Column(Integer, default=85, nullable=False)  # Percent of total supply

    # Curve state
    tokens_sold = Column(BigInteger, default=0, nullable=False)
    current_price = Column(DecimalType, nullable=False)
    market_cap = Column(DecimalType, nullable=False)
    liquidity_raised = Column(DecimalType, nullable=False)
    holder_count = Column(Integer, default=0, nullable=False)

    # Lifecycle
    is_active = Column(Boolean, default=True, nullable=False)
    graduated = Column(Boolean, default=False, nullable=False)
    graduated_at = Column(DateTime, nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=tz_now)
    updated_at = Column(DateTime, default=tz_now, onupdate=tz_now)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("tokens_sold >= 0", name="ck_meme_coin_tokens_sold_nonneg"),
        CheckConstraint("tokens_sold <= total_supply", name="ck_meme_coin_tokens_sold_supply"),
        CheckConstraint("holder_count >= 0", name="ck_meme_coin_holder_count_nonneg"),
    )

    def __repr__(self):
        return f"<MemeCoin(symbol='{self.token_symbol}', tokens_sold={self.tokens_sold})>"
