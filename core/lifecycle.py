# core/lifecycle.py
from typing import Callable, List

from .logger import get_logger

logger = get_logger(__name__)

ACTIVE = "active"
BACKGROUND = "background"
INACTIVE = "inactive"

AppStateListener = Callable[[str], None]


class AppStateObserver:
    """Explicit app-foreground/background hook. The host calls set_state()."""

    def __init__(self, state: str = ACTIVE):
        self.state = state
        self._listeners: List[AppStateListener] = []

    def add_listener(self, listener: AppStateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def set_state(self, state: str) -> None:
        if state == self.state:
            return
        logger.debug("App state %s -> %s", self.state, state)
        self.state = state
        for listener in list(self._listeners):
            listener(state)
