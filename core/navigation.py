# core/navigation.py
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .logger import get_logger

logger = get_logger(__name__)

INDEX = "index"
WELCOME = "welcome"
INFO = "info"
LOGIN = "auth/login"
REGISTER = "auth/register"
HOME = "home"
CREATE = "create"
SEARCH = "search"
ITEMS = "items"
ITEM_DETAIL = "items/detail"
SETTINGS = "settings"
ABOUT = "about"
PRIVACY = "privacy"

SCREENS = frozenset(
    {INDEX, WELCOME, INFO, LOGIN, REGISTER, HOME, CREATE, SEARCH, ITEMS, ITEM_DETAIL, SETTINGS, ABOUT, PRIVACY}
)
PROTECTED = frozenset({HOME, CREATE, SEARCH, ITEMS, ITEM_DETAIL, SETTINGS})


class NavigationError(Exception):
    """Unknown screen or a protected screen without a signed-in user."""


@dataclass
class Route:
    name: str
    params: Dict[str, Any] = field(default_factory=dict)


def initial_route(session_store) -> str:
    return HOME if session_store.is_signed_in else INDEX


class Router:
    """
    Stack of active routes. push/pop/replace/reset are the only moves;
    protected screens need a user in the session store.
    """

    def __init__(self, session_store):
        self.session_store = session_store
        self.stack: List[Route] = [Route(initial_route(session_store))]
        self._unsubscribe = session_store.subscribe(self._on_session_change)

    @property
    def current(self) -> Route:
        return self.stack[-1]

    def names(self) -> List[str]:
        return [r.name for r in self.stack]

    def _check(self, name: str) -> None:
        if name not in SCREENS:
            raise NavigationError(f"Unknown screen: {name}")
        if name in PROTECTED and not self.session_store.is_signed_in:
            raise NavigationError(f"Sign in required for {name}")

    def push(self, name: str, **params) -> Route:
        self._check(name)
        route = Route(name, params)
        self.stack.append(route)
        logger.debug("push %s", name)
        return route

    def pop(self) -> Optional[Route]:
        if len(self.stack) <= 1:
            return None
        route = self.stack.pop()
        logger.debug("pop %s", route.name)
        return route

    def replace(self, name: str, **params) -> Route:
        self._check(name)
        route = Route(name, params)
        self.stack[-1] = route
        return route

    def reset(self, name: str, **params) -> Route:
        self._check(name)
        self.stack = [Route(name, params)]
        return self.stack[0]

    def _on_session_change(self, store) -> None:
        if store.is_loading:
            return
        if not store.is_signed_in and any(r.name in PROTECTED for r in self.stack):
            logger.info("Signed out; returning to %s", INDEX)
            self.stack = [Route(INDEX)]
        elif store.is_signed_in and self.current.name in (INDEX, WELCOME, LOGIN, REGISTER):
            self.stack = [Route(HOME)]

    def close(self) -> None:
        self._unsubscribe()
