"""Exchange error kinds raised by the trading core."""


class ExchangeError(Exception):
    """Base exception for exchange errors.

    Every subclass carries the error ``kind`` reported to callers and the
    HTTP status code the API maps it to.
    """
    kind = "ExchangeError"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthorized(ExchangeError):
    """Raised when the caller has no valid identity."""
    kind = "Unauthorized"
    status_code = 401


class Forbidden(ExchangeError):
    """Raised when an authenticated caller lacks the required role."""
    kind = "Forbidden"
    status_code = 403


class UserExists(ExchangeError):
    """Raised when registering a username or email that is taken."""
    kind = "UserExists"
    status_code = 409


class NotFound(ExchangeError):
    """Raised when a coin or holder record does not exist."""
    kind = "NotFound"
    status_code = 404


class InvalidAmount(ExchangeError):
    """Raised for non-positive or out-of-bounds token quantities."""
    kind = "InvalidAmount"
    status_code = 400


class InsufficientBalance(ExchangeError):
    """Raised when a sell exceeds the holder's token balance."""
    kind = "InsufficientBalance"
    status_code = 400


class CoinInactive(ExchangeError):
    """Raised when trading a deactivated coin."""
    kind = "CoinInactive"
    status_code = 409


class CoinGraduated(ExchangeError):
    """Raised when trading a coin that has left the bonding curve."""
    kind = "CoinGraduated"
    status_code = 409


class ApplyFailure(ExchangeError):
    """Raised when the atomic apply step could not complete.

    This is the only retryable kind: it signals a transient persistence
    failure, not a data error.
    """
    kind = "ApplyFailure"
    status_code = 503


class TradeTimeout(ApplyFailure):
    """Raised when the per-coin trade lock could not be acquired in time."""


class CoinValidationError(ExchangeError):
    """Raised when coin creation or edit input is invalid."""
    kind = "InvalidCoin"
    status_code = 400
