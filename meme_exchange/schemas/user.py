"""Account and access-token schemas."""
from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional


class UserCreate(BaseModel):
    """Registration payload."""
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_]+$")
    password: str = Field(..., min_length=8, max_length=128)
    wallet_address: Optional[str] = Field(None, max_length=128, description="Default wallet recorded on trades")


class UserLogin(BaseModel):
    username: str
    password: str


class UserResponse(BaseModel):
    """Public view of an account."""
    id: int
    email: str
    username: str
    wallet_address: Optional[str]
    is_admin: bool
    created_at: datetime
    last_login_at: Optional[datetime]

    class Config:
        from_attributes = True


class Token(BaseModel):
    """Bearer token issued at login."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # Seconds


class TokenData(BaseModel):
    """Verified claims of an access token."""
    user_id: int
    username: Optional[str] = None
