import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from csrfgate.csrf import CsrfProtection
from csrfgate.routes.hooks import router as hooks_router
from csrfgate.routes.notes import router as notes_router
from csrfgate.routes.notes import write_router as notes_write_router
from csrfgate.routing import CSRF_EXEMPT
from csrfgate.settings import get_settings
from csrfgate.settings import Settings
from csrfgate.store import NoteStore

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, csrf: Optional[CsrfProtection] = None) -> FastAPI:
    settings = settings or get_settings()
    csrf = csrf or CsrfProtection.from_settings(settings)

    app = FastAPI(title="csrfgate notes")
    app.state.settings = settings
    app.state.notes = NoteStore()
    app.state.csrf = csrf

    app.include_router(notes_router)
    app.include_router(notes_write_router)
    app.include_router(hooks_router)

    @app.get("/healthz", dependencies=[CSRF_EXEMPT])
    def healthz():
        return JSONResponse({"ok": True, "env": settings.environment})

    # after every route is registered
    csrf.install(app)
    logger.info("csrfgate app ready (%s)", settings.environment)
    return app


app = create_app()
