"""Linear bonding curve pricing.

The marginal price of the n-th token sold (0-indexed) is::

    initial_price + n * price_increment

A trade of ``amount`` tokens is priced as the sum of marginal prices over the
range of curve positions it covers. The sum is an arithmetic series, so it is
computed in closed form regardless of ``amount``:

* buy from position ``s``: range ``[s, s + amount)``
* sell from position ``s``: range ``[s - amount, s)``, discounted by a flat
  slippage factor applied once to the sum

All functions here are pure. Prices are ``Decimal`` and token quantities are
``int``; floats are converted through ``str`` so ``0.0001`` stays ``0.0001``.
"""
import decimal
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from meme_exchange.core.exceptions import InvalidAmount

BUY = "buy"
SELL = "sell"

DEFAULT_SLIPPAGE = Decimal("0.05")

# Smallest unit kept for prices derived by division
PRICE_QUANTUM = Decimal("1e-18")

DECIMAL_CONTEXT = decimal.Context(prec=50, rounding=decimal.ROUND_HALF_EVEN)


@dataclass(frozen=True)
class Quote:
    """Result of pricing one trade against the curve."""
    direction: str
    token_amount: int
    total: Decimal  # Cost for buys, return for sells
    average_price: Decimal
    new_tokens_sold: int
    new_price: Decimal


def to_decimal(value) -> Decimal:
    """Convert a price-like value to ``Decimal`` without float artifacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("Boolean is not a valid price")
    if isinstance(value, int):
        return Decimal(value)
    return Decimal(str(value))


def validate_token_amount(amount) -> int:
    """Return ``amount`` as a positive int or raise ``InvalidAmount``."""
    if isinstance(amount, bool):
        raise InvalidAmount("Token amount must be a positive whole number")
    if isinstance(amount, int):
        value = amount
    else:
        try:
            dec = to_decimal(amount)
        except (decimal.InvalidOperation, TypeError, ValueError):
            raise InvalidAmount("Token amount must be a positive whole number")
        if not dec.is_finite() or dec != dec.to_integral_value():
            raise InvalidAmount("Token amount must be a positive whole number")
        value = int(dec)
    if value <= 0:
        raise InvalidAmount("Token amount must be greater than zero")
    return value


def _range_cost(initial_price: Decimal, price_increment: Decimal, start: int, amount: int) -> Decimal:
    # Sum of initial_price + n * price_increment for n in [start, start + amount)
    return amount * initial_price + price_increment * (amount * start + amount * (amount - 1) // 2)


def price_at(initial_price, price_increment, tokens_sold: int) -> Decimal:
    """Marginal price at a curve position."""
    with decimal.localcontext(DECIMAL_CONTEXT):
        return to_decimal(initial_price) + int(tokens_sold) * to_decimal(price_increment)


def market_cap(price, total_supply: int) -> Decimal:
    """Market capitalisation at a given price."""
    with decimal.localcontext(DECIMAL_CONTEXT):
        return to_decimal(price) * int(total_supply)


def quote(
    direction: str,
    initial_price,
    price_increment,
    tokens_sold: int,
    amount,
    total_supply: Optional[int] = None,
    balance: Optional[int] = None,
    slippage=DEFAULT_SLIPPAGE,
) -> Quote:
    """Price a buy or sell of ``amount`` tokens at curve position ``tokens_sold``.

    Args:
        direction: ``"buy"`` or ``"sell"``
        initial_price: Price at zero tokens sold
        price_increment: Price step per token
        tokens_sold: Current curve position
        amount: Whole number of tokens to trade
        total_supply: Upper bound for the curve position (buys)
        balance: Seller's holdings, checked when given (sells)
        slippage: Fractional discount applied to sell proceeds

    Returns:
        Quote with the trade total, average price and resulting position

    Raises:
        InvalidAmount: If the amount is not positive, a buy would exceed the
            supply, or a sell exceeds the balance or the tokens sold
    """
    amount = validate_token_amount(amount)
    tokens_sold = int(tokens_sold)
    initial_price = to_decimal(initial_price)
    price_increment = to_decimal(price_increment)

    with decimal.localcontext(DECIMAL_CONTEXT):
        if direction == BUY:
            if total_supply is not None and tokens_sold + amount > total_supply:
                raise InvalidAmount(
                    f"Only {max(0, total_supply - tokens_sold)} tokens remain on the curve"
                )
            total = _range_cost(initial_price, price_increment, tokens_sold, amount)
            new_tokens_sold = tokens_sold + amount
        elif direction == SELL:
            if balance is not None and amount > balance:
                raise InvalidAmount("Sell amount exceeds token balance")
            if amount > tokens_sold:
                raise InvalidAmount("Sell amount exceeds tokens sold on the curve")
            raw = _range_cost(initial_price, price_increment, tokens_sold - amount, amount)
            total = raw * (1 - to_decimal(slippage))
            new_tokens_sold = tokens_sold - amount
        else:
            raise ValueError(f"Unknown trade direction: {direction!r}")

        new_tokens_sold = max(0, new_tokens_sold)
        if total_supply is not None:
            new_tokens_sold = min(total_supply, new_tokens_sold)

        new_price = initial_price + new_tokens_sold * price_increment
        if direction == SELL:
            new_price = max(new_price, initial_price)

        average_price = (total / amount).quantize(PRICE_QUANTUM)

    return Quote(
        direction=direction,
        token_amount=amount,
        total=total,
        average_price=average_price,
        new_tokens_sold=new_tokens_sold,
        new_price=new_price,
    )


def tokens_for_quote(
    initial_price,
    price_increment,
    tokens_sold: int,
    budget,
    total_supply: Optional[int] = None,
) -> int:
    """Largest whole number of tokens whose buy cost fits in ``budget``.

    Solves ``a*n^2 + b*n = budget`` with ``a = price_increment / 2`` and
    ``b = initial_price + price_increment * (tokens_sold - 1/2)``, then
    corrects the floored root by whole steps.

    Raises:
        InvalidAmount: If the budget is not positive
    """
    initial_price = to_decimal(initial_price)
    price_increment = to_decimal(price_increment)
    budget = to_decimal(budget)
    tokens_sold = int(tokens_sold)
    if not budget.is_finite() or budget <= 0:
        raise InvalidAmount("Quote amount must be greater than zero")

    with decimal.localcontext(DECIMAL_CONTEXT) as ctx:
        if price_increment == 0:
            n = int((budget / initial_price).to_integral_value(rounding=decimal.ROUND_FLOOR))
        else:
            a = price_increment / 2
            b = initial_price + price_increment * (tokens_sold - Decimal("0.5"))
            root = (-b + (b * b + 4 * a * budget).sqrt(ctx)) / (2 * a)
            n = max(0, int(root.to_integral_value(rounding=decimal.ROUND_FLOOR)))

        cap = None if total_supply is None else max(0, total_supply - tokens_sold)
        if cap is not None:
            n = min(n, cap)

        while n > 0 and _range_cost(initial_price, price_increment, tokens_sold, n) > budget:
            n -= 1
        while (cap is None or n < cap) and \
                _range_cost(initial_price, price_increment, tokens_sold, n + 1) <= budget:
            n += 1

    return n
