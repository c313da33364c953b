from __future__ import annotations

from dataclasses import dataclass

LOGIN_PATH = "/login"
HOME_PATH = "/"


@dataclass(frozen=True, slots=True)
class Route:
    path: str
    page: str
    protected: bool = True


ROUTES: tuple[Route, ...] = (
    Route(path="/login", page="login", protected=False),
    Route(path="/register", page="register", protected=False),
    Route(path="/", page="home"),
    Route(path="/employees", page="employees"),
    Route(path="/shifts", page="shifts"),
    Route(path="/leaves", page="leaves"),
    Route(path="/reports", page="reports"),
    Route(path="/settings", page="settings"),
    Route(path="/freelance", page="freelance"),
    Route(path="/locations", page="locations"),
)

_ROUTES_BY_PATH = {route.path: route for route in ROUTES}


@dataclass(frozen=True, slots=True)
class RouteDecision:
    path: str
    route: Route | None = None
    redirect_to: str | None = None

    @property
    def is_redirect(self) -> bool:
        return self.redirect_to is not None


def normalize_path(path: str) -> str:
    value = (path or "").split("?", 1)[0].split("#", 1)[0].strip()
    if not value.startswith("/"):
        value = "/" + value
    if len(value) > 1:
        value = value.rstrip("/") or "/"
    return value


def find_route(path: str) -> Route | None:
    return _ROUTES_BY_PATH.get(normalize_path(path))


def resolve_route(path: str, *, authenticated: bool) -> RouteDecision:
    normalized = normalize_path(path)
    route = _ROUTES_BY_PATH.get(normalized)
    if route is None:
        return RouteDecision(path=normalized, redirect_to=HOME_PATH)
    if route.protected and not authenticated:
        return RouteDecision(path=normalized, route=route, redirect_to=LOGIN_PATH)
    return RouteDecision(path=normalized, route=route)
