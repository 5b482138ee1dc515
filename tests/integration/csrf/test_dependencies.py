from fastapi import APIRouter
from fastapi import Depends
from fastapi import FastAPI
import pytest

from csrfgate.csrf import CsrfProtection
from csrfgate.routing import mark_protected
from csrfgate.validators import HeaderPresent


@pytest.mark.asyncio
async def test_rejection_happens_before_dependencies_and_body(make_client):
    seen = []

    def audit():
        seen.append("dependency")

    router = mark_protected(APIRouter(dependencies=[Depends(audit)]))

    @router.post("/items")
    def create_item(item: dict):
        seen.append("handler")
        return item

    app = FastAPI()
    app.include_router(router)
    CsrfProtection(HeaderPresent("X-Requested-With")).install(app)

    async with make_client(app) as client:
        # invalid body; rejection must come first, not a 422
        rejected = await client.post("/items", content=b"{not json", headers={"Content-Type": "application/json"})
        accepted = await client.post("/items", json={"a": 1}, headers={"X-Requested-With": "fetch"})

    assert rejected.status_code == 400
    assert accepted.status_code == 200
    assert seen == ["dependency", "handler"]


@pytest.mark.asyncio
async def test_raising_validator_gives_rejection_not_server_error(make_client):
    class Broken:
        def validate(self, headers):
            raise KeyError("Origin")

    router = mark_protected(APIRouter())

    @router.get("/thing")
    def thing():
        return {"ok": True}

    app = FastAPI()
    app.include_router(router)
    CsrfProtection(Broken()).install(app)

    async with make_client(app) as client:
        resp = await client.get("/thing")
    assert resp.status_code == 400
    assert resp.headers["X-CSRF-Rejected"] == "1"


@pytest.mark.asyncio
async def test_method_not_allowed_is_not_a_csrf_rejection(make_client):
    router = mark_protected(APIRouter())

    @router.post("/only-post")
    def only_post():
        return {"ok": True}

    app = FastAPI()
    app.include_router(router)
    CsrfProtection(HeaderPresent("X-Nope")).install(app)

    async with make_client(app) as client:
        resp = await client.get("/only-post")
    assert resp.status_code == 405
