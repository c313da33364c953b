from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from staffhub.client.backend import BackendClient
from staffhub.routing import ROUTES, RouteDecision, resolve_route

logger = logging.getLogger("staffhub.client.router")

PageFactory = Callable[[BackendClient], Any]


@dataclass(frozen=True, slots=True)
class Placeholder:
    """Page with no behaviour of its own beyond being routable."""

    name: str


def _locations_page(backend: BackendClient) -> Any:
    # Imported on first visit only.
    from staffhub.client.locations_page import LocationsPage

    page = LocationsPage(backend)
    page.refresh()
    return page


def default_factories() -> dict[str, PageFactory]:
    factories: dict[str, PageFactory] = {route.page: (lambda _backend, name=route.page: Placeholder(name)) for route in ROUTES}
    factories["locations"] = _locations_page
    return factories


@dataclass(slots=True)
class Navigation:
    requested: str
    path: str
    page_name: str
    page: Any
    redirected: bool


class AppRouter:
    def __init__(self, backend: BackendClient, factories: Mapping[str, PageFactory] | None = None):
        self.backend = backend
        self.factories = dict(factories) if factories is not None else default_factories()
        self.pages: dict[str, Any] = {}
        self.current: Navigation | None = None

    @property
    def authenticated(self) -> bool:
        return self.backend.session is not None

    def _resolve(self, path: str) -> RouteDecision:
        decision = resolve_route(path, authenticated=self.authenticated)
        hops = 0
        while decision.is_redirect and hops < 3:
            decision = resolve_route(decision.redirect_to or "/", authenticated=self.authenticated)
            hops += 1
        return decision

    def page(self, name: str) -> Any:
        if name not in self.pages:
            factory = self.factories.get(name)
            if factory is None:
                raise KeyError(name)
            logger.info("page_loaded", extra={"page": name})
            self.pages[name] = factory(self.backend)
        return self.pages[name]

    def navigate(self, path: str) -> Navigation:
        first = resolve_route(path, authenticated=self.authenticated)
        decision = self._resolve(path)
        if decision.route is None:
            raise LookupError(f"No route for {path}")
        navigation = Navigation(
            requested=path,
            path=decision.path,
            page_name=decision.route.page,
            page=self.page(decision.route.page),
            redirected=first.is_redirect,
        )
        self.current = navigation
        return navigation
