"""Account endpoints: registration, login and the caller's profile."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from meme_exchange.core.database import get_db
from meme_exchange.core.security import require_user
from meme_exchange.models.user import User
from meme_exchange.schemas.user import Token, UserCreate, UserLogin, UserResponse
from meme_exchange.services import user_service

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(payload: UserCreate, db: Session = Depends(get_db)):
    """Register a trader account."""
    return user_service.register_user(
        db,
        email=payload.email,
        username=payload.username,
        password=payload.password,
        wallet_address=payload.wallet_address
    )


@router.post("/login", response_model=Token)
def login(payload: UserLogin, db: Session = Depends(get_db)):
    """Exchange credentials for a bearer token."""
    access_token, expires_in = user_service.login(db, payload.username, payload.password)
    return Token(access_token=access_token, expires_in=expires_in)


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(require_user)):
    return current_user
