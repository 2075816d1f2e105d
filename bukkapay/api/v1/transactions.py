from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from bukkapay.db.db import get_db
from bukkapay.core.sessions import get_current_user
from bukkapay.schemas.transfer import RecordPage
from bukkapay.services import transaction_log

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=RecordPage)
async def list_transactions(
    limit: Optional[int] = None,
    cursor: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    page = await transaction_log.list_for_user(db, user["sub"], limit, cursor)
    return RecordPage(items=page.items, next_cursor=page.next_cursor)
