from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from bukkapay.db.db import get_db
from bukkapay.core.sessions import get_current_user
from bukkapay.models.contact import Contact
from bukkapay.schemas.contact import ContactCreate, ContactOut

router = APIRouter(prefix="/contacts", tags=["contacts"])


@router.get("", response_model=List[ContactOut])
async def list_contacts(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    result = await db.execute(
        select(Contact).where(Contact.user_id == user["sub"]).order_by(Contact.name)
    )
    return result.scalars().all()


@router.post("", response_model=ContactOut, status_code=status.HTTP_201_CREATED)
async def create_contact(
    payload: ContactCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    contact = Contact(
        user_id=user["sub"],
        name=payload.name,
        username=payload.username,
        color=payload.color,
    )
    db.add(contact)
    await db.commit()
    await db.refresh(contact)
    return contact
