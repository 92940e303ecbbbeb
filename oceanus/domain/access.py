from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from oceanus.domain.models import Role, SessionState

LOGIN_PATH = "/auth/login"
ACCESS_DENIED_PATH = "/403"
ROOT_PATH = "/"
DEFAULT_LANDING_PATH = "/explorer"

PUBLIC_PATHS = frozenset({LOGIN_PATH, ACCESS_DENIED_PATH})

LANDING_PATHS: dict[str, str] = {
    Role.ADMIN: "/admin",
    Role.RESEARCHER: "/dashboard",
    Role.POLICY_USER: "/visualize",
}

STAFF_ROLES = frozenset({Role.ADMIN, Role.RESEARCHER})
ANALYST_ROLES = frozenset({Role.ADMIN, Role.RESEARCHER, Role.POLICY_USER})


@dataclass(frozen=True)
class RouteAccess:
    path: str
    label: str
    allowed_roles: frozenset[str] | None = None
    in_nav: bool = True


ROUTE_ACCESS: tuple[RouteAccess, ...] = (
    RouteAccess(path="/dashboard", label="Dashboard", allowed_roles=STAFF_ROLES),
    RouteAccess(path="/upload", label="Upload Data", allowed_roles=STAFF_ROLES),
    RouteAccess(path="/explorer", label="Data Explorer"),
    RouteAccess(path="/visualize", label="Visualizations", allowed_roles=ANALYST_ROLES),
    RouteAccess(path="/ai-tools", label="AI Tools", allowed_roles=STAFF_ROLES),
    RouteAccess(path="/taxonomy", label="Taxonomy", allowed_roles=ANALYST_ROLES),
    RouteAccess(path="/reports", label="Reports", allowed_roles=ANALYST_ROLES),
    RouteAccess(path="/admin", label="Admin", allowed_roles=frozenset({Role.ADMIN})),
    RouteAccess(path="/profile", label="Settings", in_nav=False),
)

ROUTES_BY_PATH: dict[str, RouteAccess] = {item.path: item for item in ROUTE_ACCESS}


class RouteOutcome(StrEnum):
    RENDER = "render"
    REDIRECT = "redirect"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class RouteDecision:
    outcome: RouteOutcome
    target: str

    @property
    def allowed(self) -> bool:
        return self.outcome == RouteOutcome.RENDER


def landing_path(role: str | None) -> str:
    # guest and unrecognised roles share the explorer landing page
    if role is None:
        return DEFAULT_LANDING_PATH
    return LANDING_PATHS.get(role, DEFAULT_LANDING_PATH)


def role_allowed(role: str | None, route: RouteAccess) -> bool:
    if route.allowed_roles is None:
        return True
    return role is not None and role in route.allowed_roles


def normalize_path(path: str) -> str:
    if path != ROOT_PATH and path.endswith("/"):
        return path.rstrip("/") or ROOT_PATH
    return path or ROOT_PATH


def authorize(session: SessionState, path: str) -> RouteDecision:
    """Decide whether a navigation to ``path`` renders or redirects.

    Evaluated on every navigation; nothing is cached between calls.
    """
    path = normalize_path(path)
    if path in PUBLIC_PATHS:
        return RouteDecision(RouteOutcome.RENDER, path)
    if path == ROOT_PATH:
        if session.is_authenticated:
            return RouteDecision(RouteOutcome.REDIRECT, landing_path(session.role))
        return RouteDecision(RouteOutcome.REDIRECT, LOGIN_PATH)

    route = ROUTES_BY_PATH.get(path)
    if route is None:
        return RouteDecision(RouteOutcome.NOT_FOUND, path)
    if not session.is_authenticated:
        return RouteDecision(RouteOutcome.REDIRECT, LOGIN_PATH)
    if not role_allowed(session.role, route):
        return RouteDecision(RouteOutcome.REDIRECT, ACCESS_DENIED_PATH)
    return RouteDecision(RouteOutcome.RENDER, path)


def visible_routes(role: str | None) -> list[RouteAccess]:
    return [item for item in ROUTE_ACCESS if item.in_nav and role_allowed(role, item)]
