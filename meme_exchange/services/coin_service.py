"""Coin service for creating, listing and reporting on meme coins."""
from datetime import timedelta
from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from meme_exchange.core.config import get_settings
from meme_exchange.core.database import tz_now
from meme_exchange.core.exceptions import CoinValidationError, NotFound
from meme_exchange.models.coin import MemeCoin
from meme_exchange.models.database import Holder, PriceSnapshot, Trade, TradeStatus, TradeType
from meme_exchange.models.user import User
from meme_exchange.services import bonding_curve
from meme_exchange.utils.helpers import calculate_change_percentage, generate_token_mint, validate_coin_symbol

settings = get_settings()
logger = logging.getLogger(__name__)

# Display fields an admin may edit after creation; curve parameters stay fixed
EDITABLE_FIELDS = (
    "token_name",
    "description",
    "image_url",
    "twitter_url",
    "telegram_url",
    "website_url",
    "is_featured",
    "is_active",
)

# Editable columns that are NOT NULL in the table
REQUIRED_FIELDS = ("token_name", "is_featured", "is_active")


def create_coin(
    db: Session,
    creator: User,
    name: str,
    symbol: str,
    description: Optional[str] = None,
    image_url: Optional[str] = None,
    twitter_url: Optional[str] = None,
    telegram_url: Optional[str] = None,
    website_url: Optional[str] = None
) -> MemeCoin:
    """Create a coin with the configured bonding curve parameters.

    Args:
        db: Database session
        creator: Creating user
        name: Token name
        symbol: Token symbol (2-10 letters or digits)

    Returns:
        The new MemeCoin
    """
    name = (name or "").strip()
    symbol = (symbol or "").strip()
    if not name or not symbol:
        raise CoinValidationError("Token name and symbol are required")
    if not validate_coin_symbol(symbol):
        raise CoinValidationError("Symbol must be 2-10 letters or digits")

    initial_price = settings.initial_price
    coin = MemeCoin(
        creator_id=creator.id,
        token_mint=generate_token_mint(creator.id),
        token_name=name,
        token_symbol=symbol.upper(),
        description=description,
        image_url=image_url,
        twitter_url=twitter_url,
        telegram_url=telegram_url,
        website_url=website_url,
        is_featured=False,
        bonding_curve_type="linear",
        initial_price=initial_price,
        price_increment=settings.price_increment,
        total_supply=settings.total_supply,
        graduation_threshold=settings.graduation_threshold_percent,
        tokens_sold=0,
        current_price=bonding_curve.price_at(initial_price, settings.price_increment, 0),
        market_cap=bonding_curve.market_cap(initial_price, settings.total_supply),
        liquidity_raised=Decimal("0"),
        holder_count=0,
        is_active=True,
        graduated=False
    )
    db.add(coin)
    db.commit()
    db.refresh(coin)

    logger.info(f"Meme coin created: {coin.token_symbol} ({coin.id}) by user {creator.id}")
    return coin


def get_coin(db: Session, coin_id: int) -> MemeCoin:
    """Get a coin by id or raise NotFound."""
    coin = db.query(MemeCoin).filter(MemeCoin.id == coin_id).first()
    if coin is None:
        raise NotFound("Meme coin not found")
    return coin


def get_coins(db: Session, active_only: bool = True) -> List[MemeCoin]:
    """Get coins, featured first and then by market cap.

    Args:
        db: Database session
        active_only: If True, only return active coins

    Returns:
        List of MemeCoin objects
    """
    query = db.query(MemeCoin)

    if active_only:
        query = query.filter(MemeCoin.is_active == True)

    # Market cap is sorted in Python: decimal columns are strings on SQLite
    coins = query.all()
    coins.sort(key=lambda c: (not c.is_featured, -c.market_cap, c.id))
    return coins


def update_coin(db: Session, coin_id: int, changes: Dict) -> MemeCoin:
    """Apply admin edits to a coin's display fields and lifecycle flags.

    Deactivation is a soft delete: the coin keeps its state and stops trading.
    """
    coin = get_coin(db, coin_id)
    for field, value in changes.items():
        if field not in EDITABLE_FIELDS:
            raise CoinValidationError(f"Field '{field}' cannot be changed")
        if value is None and field in REQUIRED_FIELDS:
            raise CoinValidationError(f"Field '{field}' cannot be null")
    for field, value in changes.items():
        setattr(coin, field, value)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise CoinValidationError("Coin update violates a database constraint") from e
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(coin)

    logger.info(f"Meme coin {coin.token_symbol} ({coin.id}) updated: {sorted(changes)}")
    return coin


def get_holders(db: Session, coin_id: int, limit: int = 100) -> List[Holder]:
    """Get a coin's holders, largest balance first."""
    get_coin(db, coin_id)
    return (
        db.query(Holder)
        .filter(Holder.meme_coin_id == coin_id, Holder.token_balance > 0)
        .order_by(Holder.token_balance.desc())
        .limit(limit)
        .all()
    )


def get_holder(db: Session, coin_id: int, user_id: int) -> Optional[Holder]:
    """Get one user's position in a coin, if any."""
    return db.query(Holder).filter(
        Holder.meme_coin_id == coin_id,
        Holder.user_id == user_id
    ).first()


def get_user_holdings(db: Session, user_id: int) -> List[Dict]:
    """Get a user's positions with current valuation.

    Returns:
        List of dictionaries with holder, coin and current value
    """
    rows = (
        db.query(Holder, MemeCoin)
        .join(MemeCoin, MemeCoin.id == Holder.meme_coin_id)
        .filter(Holder.user_id == user_id, Holder.token_balance > 0)
        .order_by(Holder.token_balance.desc())
        .all()
    )

    holdings = []
    for holder, coin in rows:
        current_value = coin.current_price * holder.token_balance
        holdings.append({
            "holder": holder,
            "coin": coin,
            "current_value": current_value,
            "unrealized_profit": current_value - holder.cost_basis,
        })
    return holdings


def get_trades(
    db: Session,
    coin_id: Optional[int] = None,
    user_id: Optional[int] = None,
    status: Optional[TradeStatus] = TradeStatus.CONFIRMED,
    limit: int = 100
) -> List[Trade]:
    """Get trades with optional filters, newest first.

    Args:
        db: Database session
        coin_id: Filter by coin
        user_id: Filter by user
        status: Filter by trade status (None for all)
        limit: Maximum number of trades to return

    Returns:
        List of Trade objects
    """
    query = db.query(Trade)

    if coin_id is not None:
        query = query.filter(Trade.meme_coin_id == coin_id)
    if user_id is not None:
        query = query.filter(Trade.user_id == user_id)
    if status is not None:
        query = query.filter(Trade.status == status)

    return query.order_by(Trade.created_at.desc(), Trade.id.desc()).limit(limit).all()


def get_coin_stats(db: Session, coin_id: int, hours: int = 24) -> Dict:
    """Get trading statistics for a coin over a trailing window.

    Args:
        db: Database session
        coin_id: Coin id
        hours: Window length in hours

    Returns:
        Dictionary with volume, trade counts and price change
    """
    coin = get_coin(db, coin_id)
    since = tz_now() - timedelta(hours=hours)

    trades = (
        db.query(Trade)
        .filter(
            Trade.meme_coin_id == coin_id,
            Trade.status == TradeStatus.CONFIRMED,
            Trade.created_at >= since
        )
        .order_by(Trade.created_at.asc(), Trade.id.asc())
        .all()
    )

    volume = sum((t.quote_amount for t in trades), Decimal("0"))
    buy_count = sum(1 for t in trades if t.trade_type == TradeType.BUY)

    # Price before the window: last confirmed trade earlier than `since`
    previous = (
        db.query(Trade)
        .filter(
            Trade.meme_coin_id == coin_id,
            Trade.status == TradeStatus.CONFIRMED,
            Trade.created_at < since
        )
        .order_by(Trade.created_at.desc(), Trade.id.desc())
        .first()
    )
    if previous is not None:
        open_price = previous.price_per_token
    elif trades:
        open_price = coin.initial_price
    else:
        open_price = coin.current_price

    return {
        "coin_id": coin.id,
        "hours": hours,
        "volume": volume,
        "trade_count": len(trades),
        "buy_count": buy_count,
        "sell_count": len(trades) - buy_count,
        "current_price": coin.current_price,
        "price_change_percentage": calculate_change_percentage(open_price, coin.current_price),
        "market_cap": coin.market_cap,
        "liquidity_raised": coin.liquidity_raised,
        "holder_count": coin.holder_count,
    }


def get_price_history(db: Session, coin_id: int, limit: int = 500) -> List[PriceSnapshot]:
    """Get recorded price snapshots for a coin, oldest first."""
    get_coin(db, coin_id)
    snapshots = (
        db.query(PriceSnapshot)
        .filter(PriceSnapshot.meme_coin_id == coin_id)
        .order_by(PriceSnapshot.created_at.desc(), PriceSnapshot.id.desc())
        .limit(limit)
        .all()
    )
    snapshots.reverse()
    return snapshots


def record_price_snapshots(db: Session) -> int:
    """Record one price snapshot per active, non-graduated coin.

    Volume is the confirmed quote volume since the coin's previous snapshot.

    Returns:
        Number of snapshots recorded
    """
    coins = db.query(MemeCoin).filter(MemeCoin.is_active == True, MemeCoin.graduated == False).all()
    now = tz_now()

    for coin in coins:
        last = (
            db.query(PriceSnapshot)
            .filter(PriceSnapshot.meme_coin_id == coin.id)
            .order_by(PriceSnapshot.created_at.desc(), PriceSnapshot.id.desc())
            .first()
        )
        query = db.query(Trade).filter(
            Trade.meme_coin_id == coin.id,
            Trade.status == TradeStatus.CONFIRMED
        )
        if last is not None:
            query = query.filter(Trade.created_at > last.created_at)
        volume = sum((t.quote_amount for t in query.all()), Decimal("0"))

        db.add(PriceSnapshot(
            meme_coin_id=coin.id,
            price=coin.current_price,
            volume=volume,
            created_at=now
        ))

    db.commit()
    logger.debug(f"Recorded {len(coins)} price snapshots")
    return len(coins)
