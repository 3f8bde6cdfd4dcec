"""Trading API endpoints for buying and selling against the bonding curve."""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from meme_exchange.core.database import get_db
from meme_exchange.core.security import optional_user, require_user
from meme_exchange.models.database import TradeType
from meme_exchange.models.user import User
from meme_exchange.schemas.trading import (
    BuyRequest,
    HoldingResponse,
    QuoteResponse,
    SellRequest,
    TradeResponse,
    TradeResultResponse,
    TradeTypeEnum,
)
from meme_exchange.services import coin_service
from meme_exchange.services.trading_engine import TradingEngine, TradeResult

router = APIRouter(tags=["trading"])


def _result_response(result: TradeResult) -> TradeResultResponse:
    return TradeResultResponse(
        success=True,
        trade_type=result.trade_type.value,
        token_amount=result.token_amount,
        quote_amount=result.quote_amount,
        price_per_token=result.price_per_token,
        new_price=result.new_price,
        tokens_sold=result.tokens_sold,
        tx_signature=result.signature,
        realized_profit=result.realized_profit,
        graduated=result.graduated,
        status=result.status.value
    )


@router.post("/coins/{coin_id}/buy", response_model=TradeResultResponse)
def buy(
    coin_id: int,
    request: BuyRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user)
):
    """Buy tokens by token amount or by quote-currency budget."""
    engine = TradingEngine(db)
    if request.quote_amount is not None:
        result = engine.buy_with_quote(coin_id, current_user, request.quote_amount, request.wallet_address)
    else:
        result = engine.buy(coin_id, current_user, request.token_amount, request.wallet_address)
    return _result_response(result)


@router.post("/coins/{coin_id}/sell", response_model=TradeResultResponse)
def sell(
    coin_id: int,
    request: SellRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user)
):
    """Sell tokens back to the curve."""
    result = TradingEngine(db).sell(coin_id, current_user, request.token_amount, request.wallet_address)
    return _result_response(result)


@router.get("/coins/{coin_id}/quote", response_model=QuoteResponse)
def quote(
    coin_id: int,
    side: TradeTypeEnum = Query(...),
    amount: int = Query(...),
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(optional_user)
):
    """Preview the cost or return of a trade without executing it.

    When authenticated, sell previews are checked against the caller's balance.
    """
    preview = TradingEngine(db).preview(coin_id, TradeType(side.value), amount, user=current_user)
    return QuoteResponse(
        direction=preview.direction,
        token_amount=preview.token_amount,
        total=preview.total,
        average_price=preview.average_price,
        new_tokens_sold=preview.new_tokens_sold,
        new_price=preview.new_price
    )


@router.get("/portfolio", response_model=List[HoldingResponse])
def portfolio(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user)
):
    """Get the caller's holdings with current valuation."""
    holdings = coin_service.get_user_holdings(db, current_user.id)
    return [
        HoldingResponse(
            coin_id=item["coin"].id,
            token_symbol=item["coin"].token_symbol,
            token_name=item["coin"].token_name,
            token_balance=item["holder"].token_balance,
            current_price=item["coin"].current_price,
            current_value=item["current_value"],
            average_cost=item["holder"].average_cost,
            cost_basis=item["holder"].cost_basis,
            realized_profit=item["holder"].realized_profit,
            unrealized_profit=item["unrealized_profit"]
        )
        for item in holdings
    ]


@router.get("/portfolio/trades", response_model=List[TradeResponse])
def my_trades(
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user)
):
    """Get the caller's trade history, including failed trades."""
    return coin_service.get_trades(db, user_id=current_user.id, status=None, limit=limit)
