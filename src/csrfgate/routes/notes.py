from fastapi import APIRouter
from fastapi import Request
from fastapi import status

from csrfgate.routing import mark_protected
from csrfgate.schemas import NoteCreate
from csrfgate.schemas import NoteRead

router = APIRouter(prefix="/notes", tags=["notes"])

# writes are browser-submitted and always checked
write_router = mark_protected(APIRouter(prefix="/notes", tags=["notes"]))


@router.get("/", response_model=list[NoteRead])
def list_notes(request: Request):
    return request.app.state.notes.list()


@write_router.post("/", response_model=NoteRead, status_code=status.HTTP_201_CREATED)
def create_note(request: Request, note: NoteCreate):
    return request.app.state.notes.add(text=note.text, author=note.author)
