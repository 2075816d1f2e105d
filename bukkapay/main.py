from fastapi import FastAPI
from contextlib import asynccontextmanager
from bukkapay.core.config import settings
from bukkapay.core.exceptions import register_exception_handlers
from bukkapay.core.logger import configure_logging
from bukkapay.core.queue import close_channel
from bukkapay.core.redis import init_redis, close_redis
from bukkapay.api.v1 import accounts as accounts_router
from bukkapay.api.v1 import auth as auth_router
from bukkapay.api.v1 import contacts as contacts_router
from bukkapay.api.v1 import jwks as jwks_router
from bukkapay.api.v1 import payment_requests as payment_requests_router
from bukkapay.api.v1 import transactions as transactions_router
from bukkapay.api.v1 import transfers as transfers_router
from bukkapay.db.db import engine, Base
import bukkapay.models  # noqa: F401  registers every table on Base.metadata


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()

    if settings.REDIS_URL:
        init_redis(settings.REDIS_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield
    finally:
        await close_redis()
        await close_channel()


app = FastAPI(title="BukkaPay ledger service", lifespan=lifespan)

register_exception_handlers(app)

app.include_router(auth_router.router)
app.include_router(jwks_router.router, prefix="/auth", tags=["jwks"])
app.include_router(accounts_router.router)
app.include_router(transfers_router.router)
app.include_router(transactions_router.router)
app.include_router(contacts_router.router)
app.include_router(payment_requests_router.router)


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
