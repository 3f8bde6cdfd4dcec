"""Utility helper functions."""
import time
import uuid
from decimal import Decimal
from typing import Optional


def format_currency(amount: Decimal, currency: str = "SOL") -> str:
    """Format currency amount.

    Args:
        amount: Amount to format
        currency: Currency code

    Returns:
        Formatted currency string
    """
    return f"{amount:,.9f} {currency}"


def calculate_change_percentage(old_price: Optional[Decimal], new_price: Decimal) -> Decimal:
    """Calculate percentage change between two prices.

    Args:
        old_price: Earlier price
        new_price: Later price

    Returns:
        Change percentage (0 when there is no earlier price)
    """
    if not old_price:
        return Decimal("0")
    return (new_price - old_price) / old_price * 100


def generate_signature() -> str:
    """Generate a unique trade signature.

    Returns:
        Millisecond timestamp followed by 32 random hex characters
    """
    return f"{int(time.time() * 1000)}{uuid.uuid4().hex}"


def generate_token_mint(creator_id: int) -> str:
    """Generate a pseudo mint address for a new coin.

    Args:
        creator_id: Creating user's id

    Returns:
        Unique mint identifier
    """
    return f"{creator_id:x}{uuid.uuid4().hex}{int(time.time()):x}"[:64]


def validate_coin_symbol(symbol: str) -> bool:
    """Validate coin symbol format.

    Args:
        symbol: Coin symbol

    Returns:
        True if valid, False otherwise
    """
    # Letters and digits only, 2-10 characters
    return symbol.isalnum() and 2 <= len(symbol) <= 10
