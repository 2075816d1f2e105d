import uuid
from sqlalchemy import Column, String, ForeignKey
from bukkapay.db.db import Base


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    name = Column(String(255), nullable=False)
    username = Column(String(64), nullable=False)
    color = Column(String(32), nullable=False, default="blue")
