# bukkapay/schemas/user_schema.py
from pydantic import EmailStr, Field
from typing import Optional
from datetime import datetime
from bukkapay.schemas.common import CamelModel


# Requests
class RegisterIn(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=6)
    phone: Optional[str] = None
    country_code: Optional[str] = None


class LoginIn(CamelModel):
    email: EmailStr
    password: str


class RefreshIn(CamelModel):
    refresh_token: str


# Responses
class RegisterOut(CamelModel):
    user_id: str
    wallet_id: str
    email: EmailStr


class UserOut(CamelModel):
    id: str
    wallet_id: str
    name: str
    email: EmailStr
    username: str
    phone: Optional[str] = None
    country_code: Optional[str] = None
    verified: bool
    is_superuser: bool
    created_at: Optional[datetime] = None


class TokenOut(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
