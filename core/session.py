# core/session.py
import os
import time
from typing import Callable, List, Optional

from services.auth import AuthError

from .logger import get_logger
from .models import AuthSession, AuthUser

logger = get_logger(__name__)

REFRESH_MARGIN_SECONDS = int(os.getenv("AUTH_REFRESH_MARGIN", "60"))

SessionListener = Callable[["SessionStore"], None]


class SessionStore:
    """
    Process-wide auth state. Built once at start-up and handed to whatever
    needs the current user; interested parties subscribe for changes.
    """

    def __init__(self, auth):
        self.auth = auth
        self.session: Optional[AuthSession] = None
        self.user: Optional[AuthUser] = None
        self.is_loading = True
        self._listeners: List[SessionListener] = []
        self._unsubscribe_auth = None

    def initialize(self) -> None:
        try:
            self._apply(self.auth.get_session())
        except AuthError as e:
            logger.error("Error initializing session: %s", e)
        finally:
            self.is_loading = False

        if self._unsubscribe_auth is None:
            self._unsubscribe_auth = self.auth.on_auth_state_change(self._on_auth_event)
        self._notify()

    def close(self) -> None:
        if self._unsubscribe_auth:
            self._unsubscribe_auth()
            self._unsubscribe_auth = None
        self._listeners.clear()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_app_state(self, state: str) -> None:
        """Refresh a token about to expire when the app comes back."""
        if state != "active" or not self.session:
            return
        if self.session.expires_at - time.time() > REFRESH_MARGIN_SECONDS:
            return
        try:
            self.auth.refresh()
        except AuthError as e:
            logger.warning("Token refresh failed: %s", e)

    @property
    def access_token(self) -> Optional[str]:
        return self.session.access_token if self.session else None

    @property
    def is_signed_in(self) -> bool:
        return self.user is not None

    def _apply(self, session: Optional[AuthSession]) -> None:
        self.session = session
        self.user = session.user if session else None

    def _on_auth_event(self, event: str, session: Optional[AuthSession]) -> None:
        logger.info("Session change: %s", event)
        self._apply(session)
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.exception("Session listener failed: %s", e)
