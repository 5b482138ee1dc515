from datetime import datetime

from pydantic import BaseModel
from pydantic import ConfigDict


class NoteCreate(BaseModel):
    text: str
    author: str


class NoteRead(NoteCreate):
    id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class HookEvent(BaseModel):
    kind: str
    payload: dict = {}
