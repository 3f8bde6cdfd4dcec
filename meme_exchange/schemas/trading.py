"""Pydantic schemas for API request/response validation.

Decimal fields serialize as strings so prices round-trip without loss.
"""
from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from decimal import Decimal
from typing import Optional
from enum import Enum


class TradeTypeEnum(str, Enum):
    """Trade direction enumeration."""
    BUY = "buy"
    SELL = "sell"


class TradeStatusEnum(str, Enum):
    """Trade status enumeration."""
    CONFIRMED = "confirmed"
    FAILED = "failed"


class CoinCreate(BaseModel):
    """Schema for creating a new meme coin."""
    name: str = Field(..., max_length=100, description="Token name")
    symbol: str = Field(..., max_length=20, description="Token symbol (2-10 characters)")
    description: Optional[str] = None
    image_url: Optional[str] = None
    twitter_url: Optional[str] = None
    telegram_url: Optional[str] = None
    website_url: Optional[str] = None


class CoinUpdate(BaseModel):
    """Schema for admin edits. Curve parameters cannot be changed."""
    token_name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = None
    twitter_url: Optional[str] = None
    telegram_url: Optional[str] = None
    website_url: Optional[str] = None
    is_featured: Optional[bool] = None
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def check_required_not_null(self):
        for field in ("token_name", "is_featured", "is_active"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class CoinResponse(BaseModel):
    """Schema for coin response."""
    id: int
    creator_id: int
    token_mint: str
    token_name: str
    token_symbol: str
    description: Optional[str]
    image_url: Optional[str]
    twitter_url: Optional[str]
    telegram_url: Optional[str]
    website_url: Optional[str]
    is_featured: bool
    bonding_curve_type: str
    initial_price: Decimal
    price_increment: Decimal
    total_supply: int
    graduation_threshold: int
    tokens_sold: int
    current_price: Decimal
    market_cap: Decimal
    liquidity_raised: Decimal
    holder_count: int
    is_active: bool
    graduated: bool
    graduated_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class BuyRequest(BaseModel):
    """Schema for a buy: either a token amount or a quote-currency budget."""
    token_amount: Optional[int] = Field(None, description="Whole tokens to buy")
    quote_amount: Optional[Decimal] = Field(None, description="Budget to spend instead of a token amount")
    wallet_address: Optional[str] = None

    @model_validator(mode="after")
    def check_one_amount(self):
        if (self.token_amount is None) == (self.quote_amount is None):
            raise ValueError("Provide exactly one of token_amount or quote_amount")
        return self


class SellRequest(BaseModel):
    """Schema for a sell."""
    token_amount: int = Field(..., description="Whole tokens to sell")
    wallet_address: Optional[str] = None


class TradeResultResponse(BaseModel):
    """Schema for a committed trade."""
    success: bool = True
    trade_type: TradeTypeEnum
    token_amount: int
    quote_amount: Decimal
    price_per_token: Decimal
    new_price: Decimal
    tokens_sold: int
    tx_signature: str
    realized_profit: Optional[Decimal]
    graduated: bool
    status: TradeStatusEnum


class QuoteResponse(BaseModel):
    """Schema for a trade preview."""
    direction: TradeTypeEnum
    token_amount: int
    total: Decimal
    average_price: Decimal
    new_tokens_sold: int
    new_price: Decimal

    class Config:
        from_attributes = True


class TradeResponse(BaseModel):
    """Schema for trade log entries."""
    id: int
    meme_coin_id: int
    user_id: int
    trade_type: TradeTypeEnum
    token_amount: int
    quote_amount: Decimal
    price_per_token: Decimal
    realized_profit: Optional[Decimal]
    tx_signature: str
    wallet_address: Optional[str]
    status: TradeStatusEnum
    created_at: datetime

    class Config:
        from_attributes = True


class HolderResponse(BaseModel):
    """Schema for a coin holder."""
    user_id: int
    wallet_address: Optional[str]
    token_balance: int
    total_bought: int
    total_sold: int
    cost_basis: Decimal
    average_cost: Decimal
    realized_profit: Decimal

    class Config:
        from_attributes = True


class HoldingResponse(BaseModel):
    """Schema for one position in the caller's portfolio."""
    coin_id: int
    token_symbol: str
    token_name: str
    token_balance: int
    current_price: Decimal
    current_value: Decimal
    average_cost: Decimal
    cost_basis: Decimal
    realized_profit: Decimal
    unrealized_profit: Decimal


class CoinStats(BaseModel):
    """Schema for trailing-window coin statistics."""
    coin_id: int
    hours: int
    volume: Decimal
    trade_count: int
    buy_count: int
    sell_count: int
    current_price: Decimal
    price_change_percentage: Decimal
    market_cap: Decimal
    liquidity_raised: Decimal
    holder_count: int


class PriceSnapshotResponse(BaseModel):
    """Schema for a price history point."""
    price: Decimal
    volume: Optional[Decimal]
    created_at: datetime

    class Config:
        from_attributes = True
