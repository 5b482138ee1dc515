from fastapi import APIRouter
from fastapi import Request
from fastapi import status

from csrfgate.routing import mark_exempt
from csrfgate.schemas import HookEvent

# server-to-server callbacks carry no Origin header
router = mark_exempt(APIRouter(prefix="/hooks", tags=["hooks"]))


@router.post("/{source}", status_code=status.HTTP_202_ACCEPTED)
def receive_hook(request: Request, source: str, event: HookEvent):
    request.app.state.notes.record_hook(f"{source}:{event.kind}")
    return {"ok": True}
