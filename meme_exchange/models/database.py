"""Database models for holder positions and the trade log."""
from decimal import Decimal
from sqlalchemy import Column, Integer, BigInteger, String, DateTime, Enum, ForeignKey, UniqueConstraint, CheckConstraint
from meme_exchange.core.database import Base, tz_now
from meme_exchange.core.types import DecimalType
import enum


class TradeType(str, enum.Enum):
    """Trade direction enumeration."""
    BUY = "buy"
    SELL = "sell"


class TradeStatus(str, enum.Enum):
    """Trade status enumeration."""
    CONFIRMED = "confirmed"
    FAILED = "failed"


class Holder(Base):
    """A user's current position in one coin.

    The row exists only while ``token_balance`` is positive.
    """
    __tablename__ = "meme_coin_holders"

    id = Column(Integer, primary_key=True, index=True)
    meme_coin_id = Column(Integer, ForeignKey("meme_coins.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    wallet_address = Column(String, nullable=True)
    token_balance = Column(BigInteger, default=0, nullable=False)
    total_bought = Column(BigInteger, default=0, nullable=False)
    total_sold = Column(BigInteger, default=0, nullable=False)
    cost_basis = Column(DecimalType, default=Decimal("0"), nullable=False)  # Cost of tokens still held
    realized_profit = Column(DecimalType, default=Decimal("0"), nullable=False)
    created_at = Column(DateTime, default=tz_now)
    updated_at = Column(DateTime, default=tz_now, onupdate=tz_now)

    __table_args__ = (
        UniqueConstraint("meme_coin_id", "user_id", name="uq_holder_coin_user"),
        CheckConstraint("token_balance >= 0", name="ck_holder_balance_nonneg"),
    )

    @property
    def average_cost(self) -> Decimal:
        """Weighted-average cost per token of the current balance."""
        if not self.token_balance:
            return Decimal("0")
        return self.cost_basis / self.token_balance


class Trade(Base):
    """Append-only trade log entry."""
    __tablename__ = "meme_coin_trades"

    id = Column(Integer, primary_key=True, index=True)
    meme_coin_id = Column(Integer, ForeignKey("meme_coins.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    trade_type = Column(Enum(TradeType), nullable=False)
    token_amount = Column(BigInteger, nullable=False)
    quote_amount = Column(DecimalType, nullable=False)  # Cost for buys, return for sells
    price_per_token = Column(DecimalType, nullable=False)
    realized_profit = Column(DecimalType, nullable=True)  # Sells only
    tx_signature = Column(String(64), unique=True, nullable=False)
    wallet_address = Column(String, nullable=True)
    status = Column(Enum(TradeStatus), default=TradeStatus.CONFIRMED, nullable=False)
    error_message = Column(String, nullable=True)
    created_at = Column(DateTime, default=tz_now, index=True)


class PriceSnapshot(Base):
    """Periodic price sample for charting."""
    __tablename__ = "meme_coin_price_history"

    id = Column(Integer, primary_key=True, index=True)
    meme_coin_id = Column(Integer, ForeignKey("meme_coins.id"), nullable=False, index=True)
    price = Column(DecimalType, nullable=False)
    volume = Column(DecimalType, nullable=True)  # Confirmed quote volume since previous snapshot
    created_at = Column(DateTime, default=tz_now, index=True)
