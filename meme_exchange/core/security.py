"""Password hashing, access tokens and the caller-identity dependencies.

Tokens carry the user id as ``sub``. Every authentication failure surfaces as
``Unauthorized`` so trading callers see the same error kind whether the token
is missing, expired or names a disabled account.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from meme_exchange.core.config import get_settings
from meme_exchange.core.database import get_db
from meme_exchange.core.exceptions import Forbidden, Unauthorized
from meme_exchange.models.user import User
from meme_exchange.schemas.user import TokenData

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

_settings = get_settings()
SECRET_KEY = _settings.jwt_secret_key
ALGORITHM = _settings.algorithm
ACCESS_TOKEN_EXPIRE_MINUTES = _settings.access_token_expire_minutes

# Missing credentials are reported as Unauthorized below, not by FastAPI
bearer_scheme = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against its argon2 hash."""
    return pwd_context.verify(plain_password, hashed_password)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def issue_access_token(user: User, expires_delta: Optional[timedelta] = None) -> Tuple[str, int]:
    """Sign an access token for a user.

    Args:
        user: Authenticated user
        expires_delta: Lifetime override (defaults to the configured lifetime)

    Returns:
        Tuple of (encoded JWT, lifetime in seconds)
    """
    lifetime = expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": str(user.id),
        "username": user.username,
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM), int(lifetime.total_seconds())


def decode_access_token(token: str) -> TokenData:
    """Verify a token's signature and expiry.

    Raises:
        Unauthorized: If the token is expired, malformed or has no subject
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise Unauthorized("Access token has expired")
    except JWTError:
        raise Unauthorized("Could not validate credentials")

    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        raise Unauthorized("Could not validate credentials")
    return TokenData(user_id=int(subject), username=payload.get("username"))


def resolve_user(db: Session, token: str) -> User:
    """Load the active user a token was issued to."""
    token_data = decode_access_token(token)
    user = db.get(User, token_data.user_id)
    if user is None or not user.is_active:
        raise Unauthorized("Account not found or disabled")
    return user


def require_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Dependency returning the authenticated caller.

    Raises:
        Unauthorized: If no valid bearer token is supplied
    """
    if credentials is None:
        raise Unauthorized("Authentication required")
    return resolve_user(db, credentials.credentials)


def optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """Dependency returning the caller when a token is supplied, else None."""
    if credentials is None:
        return None
    return resolve_user(db, credentials.credentials)


def require_admin(current_user: User = Depends(require_user)) -> User:
    if not current_user.is_admin:
        raise Forbidden("Admin privileges required")
    return current_user
