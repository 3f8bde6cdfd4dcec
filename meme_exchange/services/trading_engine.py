"""Trading engine executing buy and sell trades against the bonding curve."""
import decimal
import enum
import threading
import weakref
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from meme_exchange.core.config import get_settings
from meme_exchange.core.database import tz_now
from meme_exchange.core.exceptions import (
    ApplyFailure,
    CoinGraduated,
    CoinInactive,
    ExchangeError,
    InsufficientBalance,
    InvalidAmount,
    NotFound,
    TradeTimeout,
    Unauthorized,
)
from meme_exchange.models.coin import MemeCoin
from meme_exchange.models.database import Holder, Trade, TradeStatus, TradeType
from meme_exchange.models.user import User
from meme_exchange.services import bonding_curve, coin_service
from meme_exchange.services.bonding_curve import DECIMAL_CONTEXT, PRICE_QUANTUM, Quote
from meme_exchange.utils.helpers import format_currency, generate_signature
import logging

settings = get_settings()
logger = logging.getLogger(__name__)
trade_logger = logging.getLogger("trading")

ZERO = Decimal("0")


class TradeState(str, enum.Enum):
    """States a single trade request moves through."""
    VALIDATING = "validating"
    PRICING = "pricing"
    APPLYING = "applying"
    COMMITTED = "committed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class TradeResult:
    """Summary of a committed trade."""
    trade_id: int
    signature: str
    trade_type: TradeType
    token_amount: int
    quote_amount: Decimal
    price_per_token: Decimal
    new_price: Decimal
    tokens_sold: int
    graduated: bool
    realized_profit: Optional[Decimal]
    status: TradeStatus = TradeStatus.CONFIRMED


class _CoinLock:
    """Weak-referenceable holder for a coin's mutex."""
    __slots__ = ("mutex", "__weakref__")

    def __init__(self):
        self.mutex = threading.Lock()


# Entries live only while some thread holds or waits on the coin's lock
_registry_lock = threading.Lock()
_coin_locks: "weakref.WeakValueDictionary[int, _CoinLock]" = weakref.WeakValueDictionary()


def _get_coin_lock(coin_id: int) -> _CoinLock:
    with _registry_lock:
        lock = _coin_locks.get(coin_id)
        if lock is None:
            lock = _CoinLock()
            _coin_locks[coin_id] = lock
        return lock


@contextmanager
def coin_lock(coin_id: int, timeout: float):
    """Hold the serialization scope for one coin.

    Args:
        coin_id: Coin to lock
        timeout: Seconds to wait for the lock

    Raises:
        TradeTimeout: If the lock is not acquired in time
    """
    lock = _get_coin_lock(coin_id)
    if not lock.mutex.acquire(timeout=timeout):
        raise TradeTimeout(f"Timed out waiting to trade coin {coin_id}")
    try:
        yield
    finally:
        lock.mutex.release()


class TradingEngine:
    """Core trading engine for bonding curve trades.

    Every buy or sell runs validate -> price -> apply while holding the
    coin's lock, and all mutations of coin state, holder ledger and trade
    log are committed in a single transaction.
    """

    def __init__(
        self,
        db: Session,
        max_attempts: Optional[int] = None,
        lock_timeout: Optional[float] = None,
        retry_base_delay: Optional[float] = None,
        slippage: Optional[Decimal] = None
    ):
        """Initialize trading engine.

        Args:
            db: Database session
            max_attempts: Attempts per trade before giving up on apply failures
            lock_timeout: Seconds to wait for a coin's lock
            retry_base_delay: Base delay between attempts (doubles each retry)
            slippage: Fractional discount applied to sell proceeds
        """
        self.db = db
        self.max_attempts = max(1, max_attempts or settings.trade_max_attempts)
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.trade_lock_timeout_seconds
        self.retry_base_delay = (
            retry_base_delay if retry_base_delay is not None else settings.trade_retry_base_delay
        )
        self.slippage = slippage if slippage is not None else settings.sell_slippage
        self._pending_quote: Optional[Quote] = None
        self._last_quote: Optional[Quote] = None

    def buy(
        self,
        coin_id: int,
        user: Optional[User],
        token_amount: int,
        wallet_address: Optional[str] = None
    ) -> TradeResult:
        """Buy tokens from the curve.

        Args:
            coin_id: Coin to buy
            user: Authenticated caller
            token_amount: Whole number of tokens to buy
            wallet_address: Caller's wallet, recorded for audit only

        Returns:
            TradeResult of the committed trade
        """
        return self._execute(TradeType.BUY, coin_id, user, token_amount=token_amount,
                             wallet_address=wallet_address)

    def buy_with_quote(
        self,
        coin_id: int,
        user: Optional[User],
        quote_amount: Decimal,
        wallet_address: Optional[str] = None
    ) -> TradeResult:
        """Buy as many tokens as ``quote_amount`` pays for.

        The caller is charged the exact curve cost of the tokens received,
        which never exceeds ``quote_amount``.
        """
        return self._execute(TradeType.BUY, coin_id, user, quote_amount=quote_amount,
                             wallet_address=wallet_address)

    def sell(
        self,
        coin_id: int,
        user: Optional[User],
        token_amount: int,
        wallet_address: Optional[str] = None
    ) -> TradeResult:
        """Sell tokens back to the curve.

        Args:
            coin_id: Coin to sell
            user: Authenticated caller
            token_amount: Whole number of tokens to sell
            wallet_address: Caller's wallet, recorded for audit only

        Returns:
            TradeResult of the committed trade
        """
        return self._execute(TradeType.SELL, coin_id, user, token_amount=token_amount,
                             wallet_address=wallet_address)

    def preview(
        self,
        coin_id: int,
        direction: TradeType,
        token_amount: int,
        user: Optional[User] = None
    ) -> Quote:
        """Quote a trade against the current coin state without executing it."""
        coin = self._load_coin(coin_id, for_update=False)
        self._check_tradable(coin)
        balance = None
        if direction == TradeType.SELL and user is not None:
            holder = coin_service.get_holder(self.db, coin_id, user.id)
            balance = holder.token_balance if holder else 0
        return self._price(coin, direction, token_amount, balance)

    def _execute(
        self,
        direction: TradeType,
        coin_id: int,
        user: Optional[User],
        token_amount: Optional[int] = None,
        quote_amount: Optional[Decimal] = None,
        wallet_address: Optional[str] = None
    ) -> TradeResult:
        if user is None or getattr(user, "id", None) is None:
            raise Unauthorized("Unauthorized")
        wallet_address = wallet_address or user.wallet_address

        self._last_quote = None
        retryer = Retrying(
            retry=retry_if_exception_type(ApplyFailure),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_base_delay),
            before_sleep=self._log_retry,
            reraise=True,
        )

        try:
            return retryer(
                self._run_attempt, direction, coin_id, user, token_amount, quote_amount, wallet_address
            )
        except ApplyFailure as e:
            logger.error(f"Trade on coin {coin_id} failed after {self.max_attempts} attempts: {e}")
            if self._last_quote is not None:
                self._record_failed_trade(direction, coin_id, user, self._last_quote, wallet_address, e)
            raise
        except ExchangeError as e:
            trade_logger.info(
                f"{TradeState.REJECTED.value}: {direction.value} coin={coin_id} "
                f"user={user.id} kind={e.kind} reason={e.message}"
            )
            raise

    def _run_attempt(
        self,
        direction: TradeType,
        coin_id: int,
        user: User,
        token_amount: Optional[int],
        quote_amount: Optional[Decimal],
        wallet_address: Optional[str]
    ) -> TradeResult:
        self._pending_quote = None
        try:
            with coin_lock(coin_id, self.lock_timeout):
                return self._attempt(direction, coin_id, user, token_amount, quote_amount, wallet_address)
        except ApplyFailure:
            self.db.rollback()
            self._last_quote = self._pending_quote or self._last_quote
            raise
        except ExchangeError:
            self.db.rollback()
            raise

    def _log_retry(self, retry_state: RetryCallState):
        error = retry_state.outcome.exception()
        logger.warning(
            "Trade attempt %d/%d failed: %s. Retrying in %.2f seconds...",
            retry_state.attempt_number, self.max_attempts, error, retry_state.next_action.sleep
        )

    def _attempt(
        self,
        direction: TradeType,
        coin_id: int,
        user: User,
        token_amount: Optional[int],
        quote_amount: Optional[Decimal],
        wallet_address: Optional[str]
    ) -> TradeResult:
        try:
            return self._validate_and_apply(direction, coin_id, user, token_amount, quote_amount, wallet_address)
        except SQLAlchemyError as e:
            # Lock waits, lost connections and StaleDataError from a bumped coin version
            self.db.rollback()
            raise ApplyFailure("Trade could not be applied, please retry") from e

    def _validate_and_apply(
        self,
        direction: TradeType,
        coin_id: int,
        user: User,
        token_amount: Optional[int],
        quote_amount: Optional[Decimal],
        wallet_address: Optional[str]
    ) -> TradeResult:
        self._transition(TradeState.VALIDATING, direction, coin_id, user)
        coin = self._load_coin(coin_id, for_update=True)
        self._check_tradable(coin)

        if direction == TradeType.BUY and quote_amount is not None:
            token_amount = bonding_curve.tokens_for_quote(
                coin.initial_price,
                coin.price_increment,
                coin.tokens_sold,
                quote_amount,
                total_supply=coin.total_supply
            )
            if token_amount <= 0:
                raise InvalidAmount("Quote amount is too small to buy a single token")
        token_amount = bonding_curve.validate_token_amount(token_amount)

        holder = self._load_holder(coin_id, user.id)
        balance = None
        if direction == TradeType.SELL:
            if holder is None:
                raise NotFound("You do not hold any tokens")
            if holder.token_balance < token_amount:
                raise InsufficientBalance("Insufficient token balance")
            balance = holder.token_balance

        self._transition(TradeState.PRICING, direction, coin_id, user)
        quote = self._price(coin, direction, token_amount, balance)
        self._pending_quote = quote

        self._transition(TradeState.APPLYING, direction, coin_id, user)
        symbol = coin.token_symbol
        if direction == TradeType.BUY:
            trade = self._apply_buy(coin, holder, user, quote, wallet_address)
        else:
            trade = self._apply_sell(coin, holder, user, quote, wallet_address)
        result = TradeResult(
            trade_id=trade.id,
            signature=trade.tx_signature,
            trade_type=direction,
            token_amount=quote.token_amount,
            quote_amount=quote.total,
            price_per_token=quote.average_price,
            new_price=quote.new_price,
            tokens_sold=quote.new_tokens_sold,
            graduated=coin.graduated,
            realized_profit=trade.realized_profit,
        )
        self.db.commit()

        self._transition(TradeState.COMMITTED, direction, coin_id, user)
        trade_logger.info(
            f"{direction.value.upper()} {result.token_amount} {symbol} "
            f"for {format_currency(result.quote_amount)} (avg {result.price_per_token}) "
            f"user={user.id} sig={result.signature} tokens_sold={result.tokens_sold}"
            + (" GRADUATED" if result.graduated else "")
        )
        return result

    def _apply_buy(
        self,
        coin: MemeCoin,
        holder: Optional[Holder],
        user: User,
        quote: Quote,
        wallet_address: Optional[str]
    ) -> Trade:
        with decimal.localcontext(DECIMAL_CONTEXT):
            coin.tokens_sold = quote.new_tokens_sold
            coin.current_price = quote.new_price
            coin.liquidity_raised = max(ZERO, coin.liquidity_raised + quote.total)
            coin.market_cap = bonding_curve.market_cap(quote.new_price, coin.total_supply)

            if holder is None:
                holder = Holder(
                    meme_coin_id=coin.id,
                    user_id=user.id,
                    wallet_address=wallet_address,
                    token_balance=0,
                    total_bought=0,
                    total_sold=0,
                    cost_basis=ZERO,
                    realized_profit=ZERO
                )
                self.db.add(holder)
                coin.holder_count = coin.holder_count + 1
            elif wallet_address:
                holder.wallet_address = wallet_address

            holder.token_balance = holder.token_balance + quote.token_amount
            holder.total_bought = holder.total_bought + quote.token_amount
            holder.cost_basis = holder.cost_basis + quote.total

        # Graduation: tokens_sold / total_supply >= threshold percent
        if not coin.graduated and coin.tokens_sold * 100 >= coin.graduation_threshold * coin.total_supply:
            coin.graduated = True
            coin.graduated_at = tz_now()
            logger.info(f"Coin {coin.token_symbol} ({coin.id}) graduated at {coin.tokens_sold} tokens sold")

        return self._append_trade(coin, user, TradeType.BUY, quote, wallet_address)

    def _apply_sell(
        self,
        coin: MemeCoin,
        holder: Holder,
        user: User,
        quote: Quote,
        wallet_address: Optional[str]
    ) -> Trade:
        with decimal.localcontext(DECIMAL_CONTEXT):
            coin.tokens_sold = quote.new_tokens_sold
            coin.current_price = quote.new_price
            coin.liquidity_raised = max(ZERO, coin.liquidity_raised - quote.total)
            coin.market_cap = bonding_curve.market_cap(quote.new_price, coin.total_supply)

            # Weighted-average cost of the tokens leaving the position
            if quote.token_amount == holder.token_balance:
                released_cost = holder.cost_basis
            else:
                released_cost = (holder.average_cost * quote.token_amount).quantize(PRICE_QUANTUM)
            profit = quote.total - released_cost

            holder.token_balance = holder.token_balance - quote.token_amount
            holder.total_sold = holder.total_sold + quote.token_amount
            holder.cost_basis = max(ZERO, holder.cost_basis - released_cost)
            holder.realized_profit = holder.realized_profit + profit

        if holder.token_balance <= 0:
            self.db.delete(holder)
            coin.holder_count = max(0, coin.holder_count - 1)

        return self._append_trade(coin, user, TradeType.SELL, quote, wallet_address, profit)

    def _append_trade(
        self,
        coin: MemeCoin,
        user: User,
        trade_type: TradeType,
        quote: Quote,
        wallet_address: Optional[str],
        profit: Optional[Decimal] = None
    ) -> Trade:
        trade = Trade(
            meme_coin_id=coin.id,
            user_id=user.id,
            trade_type=trade_type,
            token_amount=quote.token_amount,
            quote_amount=quote.total,
            price_per_token=quote.average_price,
            realized_profit=profit,
            tx_signature=generate_signature(),
            wallet_address=wallet_address,
            status=TradeStatus.CONFIRMED
        )
        self.db.add(trade)
        self.db.flush()
        return trade

    def _record_failed_trade(
        self,
        direction: TradeType,
        coin_id: int,
        user: User,
        quote: Quote,
        wallet_address: Optional[str],
        error: Exception
    ):
        """Append a failed trade entry in its own transaction."""
        try:
            trade = Trade(
                meme_coin_id=coin_id,
                user_id=user.id,
                trade_type=direction,
                token_amount=quote.token_amount,
                quote_amount=quote.total,
                price_per_token=quote.average_price,
                tx_signature=generate_signature(),
                wallet_address=wallet_address,
                status=TradeStatus.FAILED,
                error_message=str(error.__cause__ or error)[:500]
            )
            self.db.add(trade)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Could not record failed trade on coin {coin_id}: {e}")

    def _price(
        self,
        coin: MemeCoin,
        direction: TradeType,
        token_amount: int,
        balance: Optional[int]
    ) -> Quote:
        return bonding_curve.quote(
            direction.value,
            coin.initial_price,
            coin.price_increment,
            coin.tokens_sold,
            token_amount,
            total_supply=coin.total_supply,
            balance=balance,
            slippage=self.slippage
        )

    def _load_coin(self, coin_id: int, for_update: bool) -> MemeCoin:
        query = self.db.query(MemeCoin).filter(MemeCoin.id == coin_id).populate_existing()
        if for_update:
            query = query.with_for_update()
        coin = query.first()
        if coin is None:
            raise NotFound("Meme coin not found")
        return coin

    def _load_holder(self, coin_id: int, user_id: int) -> Optional[Holder]:
        return self.db.query(Holder).filter(
            Holder.meme_coin_id == coin_id,
            Holder.user_id == user_id
        ).populate_existing().with_for_update().first()

    @staticmethod
    def _check_tradable(coin: MemeCoin):
        if not coin.is_active:
            raise CoinInactive("This token is not currently tradable")
        if coin.graduated:
            raise CoinGraduated("This token has graduated from the bonding curve")

    @staticmethod
    def _transition(state: TradeState, direction: TradeType, coin_id: int, user: User):
        trade_logger.debug(f"{state.value}: {direction.value} coin={coin_id} user={user.id}")
