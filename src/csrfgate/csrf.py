"""Header based CSRF protection for FastAPI and Starlette apps.

Build one ``CsrfProtection`` at startup, register validators, mark routers
with ``mark_protected`` / ``mark_exempt`` and call ``install(app)`` once the
routes are composed::

    csrf = CsrfProtection()
    csrf.validate(OriginMatchesKnownHost("https", "app.example"))
    app.include_router(mark_protected(forms_router))
    csrf.install(app)

A request is checked when its route is marked protected, or when it is
unmarked and ``apply_to_all_routes()`` was called. Exempt routes are never
checked. A checked request passes only if every validator passes; otherwise
it gets a 400 with ``X-CSRF-Rejected: 1`` and the endpoint never runs.
"""
import logging
from collections import Counter
from collections.abc import Mapping
from typing import TYPE_CHECKING

from starlette.datastructures import Headers
from starlette.routing import WebSocketRoute

from csrfgate.errors import CsrfConfigError
from csrfgate.middleware import CsrfGuard
from csrfgate.middleware import Decision
from csrfgate.routing import RouteClassification
from csrfgate.routing import walk_routes
from csrfgate.validators import as_headers
from csrfgate.validators import HeaderPresent
from csrfgate.validators import OriginMatchesHostHeader
from csrfgate.validators import OriginMatchesKnownHost
from csrfgate.validators import RequestValidator

if TYPE_CHECKING:
    from csrfgate.settings import Settings

logger = logging.getLogger(__name__)


class CsrfProtection:
    def __init__(self, *validators: RequestValidator, protect_by_default: bool = False):
        self._validators: list[RequestValidator] = []
        self._frozen: tuple[RequestValidator, ...] = ()
        self._protect_by_default = protect_by_default
        self._sealed = False
        for validator in validators:
            self.validate(validator)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CsrfProtection":
        csrf = cls(protect_by_default=settings.protect_by_default)
        if settings.trusted_origin:
            scheme, host, port = settings.trusted_origin_parts
            csrf.validate(OriginMatchesKnownHost(scheme, host, port))
        if settings.match_host_header:
            csrf.validate(OriginMatchesHostHeader())
        for name in settings.required_header_names:
            csrf.validate(HeaderPresent(name))
        return csrf

    # --- configuration -------------------------------------------------

    def _check_not_sealed(self) -> None:
        if self._sealed:
            raise CsrfConfigError("CSRF protection is already installed; configure it before install()")

    def validate(self, validator: RequestValidator) -> "CsrfProtection":
        """Validate request headers with ``validator``.

        If called multiple times, all validators must pass to approve a request.
        """
        self._check_not_sealed()
        if not callable(getattr(validator, "validate", None)):
            raise CsrfConfigError(f"{validator!r} has no validate(headers) method")
        self._validators.append(validator)
        return self

    add_validator = validate

    def set_default_protect(self, enabled: bool) -> "CsrfProtection":
        self._check_not_sealed()
        self._protect_by_default = bool(enabled)
        return self

    def apply_to_all_routes(self) -> "CsrfProtection":
        return self.set_default_protect(True)

    @property
    def protect_by_default(self) -> bool:
        return self._protect_by_default

    @property
    def validators(self) -> tuple[RequestValidator, ...]:
        return self._frozen if self._sealed else tuple(self._validators)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        if not self._sealed:
            self._frozen = tuple(self._validators)
            self._sealed = True

    # --- request time --------------------------------------------------

    def evaluate(self, headers: Mapping[str, str]) -> bool:
        headers = as_headers(headers)
        for validator in self.validators:
            try:
                ok = validator.validate(headers)
            except Exception:
                logger.exception("CSRF validator %r raised; treating as failure", validator)
                return False
            if not ok:
                logger.debug("CSRF validator %r failed", validator)
                return False
        return True

    def applies_to(self, classification: RouteClassification) -> bool:
        if classification is RouteClassification.EXEMPT:
            return False
        if classification is RouteClassification.PROTECTED:
            return True
        return self._protect_by_default

    def decide(self, classification: RouteClassification | None, headers: Headers) -> Decision:
        if classification is None:
            classification = RouteClassification.UNMARKED
        if not self.applies_to(classification):
            return Decision.ALLOW
        return Decision.ALLOW if self.evaluate(headers) else Decision.REJECT

    # --- installation --------------------------------------------------

    def install(self, app) -> int:
        """Guard every route of ``app`` and seal this configuration.

        Included routers and mounted apps are walked down to their leaf
        routes. Call again after adding routes to guard the new ones.
        Returns the number of routes guarded by this call.

        Raises ``CsrfConfigError`` when a route cannot be classified or
        guarded, rather than leaving it unchecked.
        """
        self.seal()
        router = getattr(app, "router", app)
        counts: Counter = Counter()
        for leaf in walk_routes(router.routes):
            route = leaf.route
            if isinstance(route, WebSocketRoute):
                continue
            guard = vars(route).get("handle")
            if isinstance(guard, CsrfGuard):
                if guard.protection is not self:
                    raise CsrfConfigError(f"Route {route!r} is guarded by another CsrfProtection")
                if guard.classification is not leaf.classification:
                    raise CsrfConfigError(
                        f"Route {route!r} is reachable as both {guard.classification.value} and "
                        f"{leaf.classification.value}"
                    )
                continue
            if not leaf.direct:
                if self.applies_to(leaf.classification):
                    raise CsrfConfigError(f"Route {route!r} is served through a copy and cannot be guarded")
                continue
            route.handle = CsrfGuard(route.handle, leaf.classification, self, getattr(route, "methods", None))
            counts[leaf.classification] += 1

        guarded = sum(counts.values())
        logger.info(
            "CSRF protection guarded %d routes (protected=%d exempt=%d unmarked=%d, default protect=%s, validators=%d)",
            guarded,
            counts[RouteClassification.PROTECTED],
            counts[RouteClassification.EXEMPT],
            counts[RouteClassification.UNMARKED],
            self._protect_by_default,
            len(self._frozen),
        )
        return guarded
