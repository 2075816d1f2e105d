from pydantic import Field
from bukkapay.schemas.common import CamelModel


class ContactCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    username: str = Field(..., min_length=3, max_length=64)
    color: str = "blue"


class ContactOut(CamelModel):
    id: str
    name: str
    username: str
    color: str
