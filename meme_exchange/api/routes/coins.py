"""Meme coin listing, creation and analytics endpoints."""
from typing import List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from meme_exchange.core.database import get_db
from meme_exchange.core.security import require_admin, require_user
from meme_exchange.models.user import User
from meme_exchange.schemas.trading import (
    CoinCreate,
    CoinResponse,
    CoinStats,
    CoinUpdate,
    HolderResponse,
    PriceSnapshotResponse,
    TradeResponse,
)
from meme_exchange.services import coin_service

router = APIRouter(prefix="/coins", tags=["coins"])


@router.post("", response_model=CoinResponse, status_code=status.HTTP_201_CREATED)
def create_coin(
    coin_data: CoinCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user)
):
    """Create a new meme coin on a fresh bonding curve."""
    return coin_service.create_coin(
        db,
        current_user,
        name=coin_data.name,
        symbol=coin_data.symbol,
        description=coin_data.description,
        image_url=coin_data.image_url,
        twitter_url=coin_data.twitter_url,
        telegram_url=coin_data.telegram_url,
        website_url=coin_data.website_url
    )


@router.get("", response_model=List[CoinResponse])
def list_coins(db: Session = Depends(get_db)):
    """List active coins, featured first then by market cap."""
    return coin_service.get_coins(db, active_only=True)


@router.get("/{coin_id}", response_model=CoinResponse)
def get_coin(coin_id: int, db: Session = Depends(get_db)):
    """Get a single coin."""
    return coin_service.get_coin(db, coin_id)


@router.patch("/{coin_id}", response_model=CoinResponse)
def update_coin(
    coin_id: int,
    changes: CoinUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin)
):
    """Edit display metadata or (de)activate a coin (admin only)."""
    return coin_service.update_coin(db, coin_id, changes.model_dump(exclude_unset=True))


@router.get("/{coin_id}/holders", response_model=List[HolderResponse])
def get_holders(
    coin_id: int,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db)
):
    """Get a coin's holders by balance."""
    return coin_service.get_holders(db, coin_id, limit=limit)


@router.get("/{coin_id}/trades", response_model=List[TradeResponse])
def get_trades(
    coin_id: int,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db)
):
    """Get confirmed trade history for a coin, newest first."""
    coin_service.get_coin(db, coin_id)
    return coin_service.get_trades(db, coin_id=coin_id, limit=limit)


@router.get("/{coin_id}/stats", response_model=CoinStats)
def get_stats(
    coin_id: int,
    hours: int = Query(24, ge=1, le=24 * 30),
    db: Session = Depends(get_db)
):
    """Get trailing-window volume, trade counts and price change."""
    return coin_service.get_coin_stats(db, coin_id, hours=hours)


@router.get("/{coin_id}/price-history", response_model=List[PriceSnapshotResponse])
def get_price_history(
    coin_id: int,
    limit: int = Query(500, ge=1, le=5000),
    db: Session = Depends(get_db)
):
    """Get recorded price snapshots, oldest first."""
    return coin_service.get_price_history(db, coin_id, limit=limit)
