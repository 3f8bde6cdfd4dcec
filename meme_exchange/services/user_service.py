"""Account registration and login."""
import logging
from typing import Optional, Tuple
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from meme_exchange.core.database import tz_now
from meme_exchange.core.exceptions import Unauthorized, UserExists
from meme_exchange.core.security import hash_password, issue_access_token, verify_password
from meme_exchange.models.user import User

logger = logging.getLogger(__name__)


def register_user(
    db: Session,
    email: str,
    username: str,
    password: str,
    wallet_address: Optional[str] = None
) -> User:
    """Create a trader account.

    Usernames and emails are unique case-insensitively.

    Raises:
        UserExists: If the username or email is already registered
    """
    taken = (
        db.query(User)
        .filter(or_(
            func.lower(User.username) == username.lower(),
            func.lower(User.email) == email.lower()
        ))
        .first()
    )
    if taken is not None:
        field = "Username" if taken.username.lower() == username.lower() else "Email"
        raise UserExists(f"{field} already registered")

    user = User(
        email=email,
        username=username,
        hashed_password=hash_password(password),
        wallet_address=wallet_address,
        is_active=True,
        is_admin=False
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"User registered: {user.username} ({user.id})")
    return user


def login(db: Session, username: str, password: str) -> Tuple[str, int]:
    """Check credentials and issue an access token.

    Returns:
        Tuple of (access token, lifetime in seconds)

    Raises:
        Unauthorized: If the credentials do not match an active account
    """
    user = db.query(User).filter(User.username == username).first()
    if user is None or not verify_password(password, user.hashed_password):
        logger.warning(f"Failed login for username '{username}'")
        raise Unauthorized("Incorrect username or password")
    if not user.is_active:
        raise Unauthorized("Account is disabled")

    user.last_login_at = tz_now()
    db.commit()
    return issue_access_token(user)
