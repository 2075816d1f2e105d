# bukkapay/api/v1/auth.py
import logging
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from bukkapay.schemas.user_schema import (
    RegisterIn,
    RegisterOut,
    LoginIn,
    TokenOut,
    RefreshIn,
    UserOut,
)
from bukkapay.db.db import get_db
from bukkapay.core.config import settings
from bukkapay.core.exceptions import AuthenticationError, NotFound
from bukkapay.core.rate_limiter import rate_limit_dependency
from bukkapay.core.sessions import get_current_user
from bukkapay.models.user import User
from bukkapay.services.user_service import (
    create_user,
    authenticate,
    create_session,
    revoke_session,
    rotate_refresh,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def signup_rate_limit_dep():
    async def _dep(request: Request):
        return await rate_limit_dependency(
            request=request,
            user_id=None,
            limit=5,
            period=60,
        )

    return Depends(_dep)


def _token_out(tokens: dict) -> TokenOut:
    return TokenOut(
        access_token=tokens["access_token"],
        refresh_token=tokens["refresh_token"],
        expires_in=60 * settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    )


@router.post("/register", response_model=RegisterOut, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterIn,
    db: AsyncSession = Depends(get_db),
    _: None = signup_rate_limit_dep(),
):
    user = await create_user(
        db,
        name=payload.name,
        email=payload.email,
        username=payload.username,
        password=payload.password,
        phone=payload.phone,
        country_code=payload.country_code,
    )
    logger.info("User %s registered with wallet %s", user.id, user.wallet_id)
    return RegisterOut(user_id=user.id, wallet_id=user.wallet_id, email=user.email)


@router.post("/login", response_model=TokenOut)
async def login(payload: LoginIn, db: AsyncSession = Depends(get_db)):
    user = await authenticate(db, payload.email, payload.password)
    if not user:
        raise AuthenticationError("Invalid email or password")
    tokens = await create_session(db, user)
    logger.info("User %s logged in", user.id)
    return _token_out(tokens)


@router.post("/refresh", response_model=TokenOut)
async def refresh(payload: RefreshIn, db: AsyncSession = Depends(get_db)):
    tokens = await rotate_refresh(db, payload.refresh_token)
    if not tokens:
        raise AuthenticationError("Invalid refresh token")
    return _token_out(tokens)


@router.post("/logout")
async def logout(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    ok = await revoke_session(db, user["sid"])
    logger.info("Session %s of user %s revoked", user["sid"], user["sub"])
    return {"ok": ok}


@router.get("/me", response_model=UserOut)
async def me(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    account_holder = await db.get(User, user["sub"])
    if account_holder is None:
        raise NotFound("User not found")
    return account_holder
