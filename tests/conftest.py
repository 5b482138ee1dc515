import os

# Minimal values for tests; the notes app reads these at import
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("CSRF_PROTECT_BY_DEFAULT", "0")
os.environ.setdefault("CSRF_TRUSTED_ORIGIN", "http://testserver")

from fastapi import APIRouter
from fastapi import FastAPI
from fastapi import Response
from fastapi import status
from httpx import ASGITransport
from httpx import AsyncClient
import pytest

from csrfgate.csrf import CsrfProtection
from csrfgate.routing import mark_exempt
from csrfgate.routing import mark_protected


class Always:
    """Validator with a fixed answer that counts how often it was asked."""

    def __init__(self, result):
        self.result = result
        self.calls = 0

    def validate(self, headers):
        self.calls += 1
        return self.result

    def __repr__(self):
        return f"Always({self.result})"


def build_app(*validators, protect_by_default=False):
    """App with a protected /endpoint, an unmarked /noCsrfProtection and an exempt /exempt."""
    csrf = CsrfProtection(*validators, protect_by_default=protect_by_default)
    app = FastAPI()
    app.state.handled = []

    protected = mark_protected(APIRouter())

    @protected.get("/endpoint", status_code=status.HTTP_204_NO_CONTENT)
    def endpoint():
        app.state.handled.append("endpoint")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    exempt = mark_exempt(APIRouter())

    @exempt.get("/exempt")
    def exempt_endpoint():
        app.state.handled.append("exempt")
        return {"ok": True}

    @app.get("/noCsrfProtection", status_code=status.HTTP_201_CREATED)
    def unmarked():
        app.state.handled.append("unmarked")
        return {"ok": True}

    app.include_router(protected)
    app.include_router(exempt)
    csrf.install(app)
    return app


def client_for(app, **kwargs):
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver", **kwargs)


@pytest.fixture
def passing():
    return Always(True)


@pytest.fixture
def failing():
    return Always(False)


# ---- HTTP client bound to the notes app ----
@pytest.fixture
def notes_app():
    from csrfgate.app import create_app
    from csrfgate.settings import Settings

    return create_app(Settings())


@pytest.fixture
async def client(notes_app):
    async with client_for(notes_app) as ac:
        yield ac


@pytest.fixture
def make_app():
    return build_app


@pytest.fixture
def make_client():
    return client_for


@pytest.fixture
def always():
    return Always
