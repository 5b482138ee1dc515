"""The decision point: an ASGI guard around each leaf route's ``handle``.

Once a router has picked a route it calls ``route.handle``; ``install``
replaces that with a ``CsrfGuard`` on every leaf, which decides before
FastAPI solves dependencies, reads the body or runs the endpoint.
"""
import enum
import logging
from collections.abc import Collection
from http import HTTPStatus
from typing import TYPE_CHECKING

from starlette import status
from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp
from starlette.types import Receive
from starlette.types import Scope
from starlette.types import Send

from csrfgate.routing import RouteClassification

if TYPE_CHECKING:
    from csrfgate.csrf import CsrfProtection

logger = logging.getLogger(__name__)

REJECTED_HEADER = "X-CSRF-Rejected"


class Decision(str, enum.Enum):
    ALLOW = "allow"
    REJECT = "reject"


def reject() -> JSONResponse:
    return JSONResponse(
        {"detail": HTTPStatus.BAD_REQUEST.phrase},
        status_code=status.HTTP_400_BAD_REQUEST,
        headers={REJECTED_HEADER: "1"},
    )


class CsrfGuard:
    def __init__(
        self,
        app: ASGIApp,
        classification: RouteClassification,
        protection: "CsrfProtection",
        methods: Collection[str] | None = None,
    ) -> None:
        self.app = app
        self.classification = classification
        self.protection = protection
        self.methods = methods

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        if self.methods and scope["method"] not in self.methods:
            # the route answers 405 itself
            await self.app(scope, receive, send)
            return

        decision = self.protection.decide(self.classification, Headers(scope=scope))
        if decision is Decision.REJECT:
            logger.warning(
                "CSRF check rejected %s %s (%s route)",
                scope.get("method"),
                scope.get("path"),
                self.classification.value,
            )
            response = reject()
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)

    def __repr__(self) -> str:
        return f"CsrfGuard({self.app!r}, {self.classification.value})"
