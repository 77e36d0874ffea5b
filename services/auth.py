# services/auth.py
import os
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from core.logger import get_logger
from core.models import AuthSession, AuthUser

logger = get_logger(__name__)

SUPABASE_URL = os.getenv("SUPABASE_URL", "").rstrip("/")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
AUTH_TIMEOUT = int(os.getenv("AUTH_TIMEOUT", "30"))

AuthListener = Callable[[str, Optional[AuthSession]], None]


class AuthError(Exception):
    """Auth provider rejected the request or was unreachable."""


def _session_from_body(body: Dict[str, Any]) -> AuthSession:
    expires_at = body.get("expires_at")
    if not expires_at:
        expires_at = int(time.time()) + int(body.get("expires_in") or 3600)
    return AuthSession(
        access_token=body.get("access_token") or "",
        refresh_token=body.get("refresh_token") or "",
        expires_at=int(expires_at),
        user=AuthUser.from_dict(body.get("user") or {}),
    )


class AuthClient:
    """
    Password auth against the hosted auth REST API. Keeps the current session
    in memory and tells subscribers about every change.
    """

    def __init__(
        self,
        base_url: str = SUPABASE_URL,
        api_key: str = SUPABASE_ANON_KEY,
        http: Optional[requests.Session] = None,
        timeout: int = AUTH_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.http = http or requests.Session()
        self.timeout = timeout
        self.session: Optional[AuthSession] = None
        self._listeners: List[AuthListener] = []

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: str) -> None:
        logger.debug("Auth event %s", event)
        for listener in list(self._listeners):
            listener(event, self.session)

    def _post(self, path: str, payload: Dict[str, Any], token: Optional[str] = None) -> Dict[str, Any]:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            r = self.http.post(f"{self.base_url}/auth/v1{path}", json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise AuthError(str(e)) from e
        return self._parse(r)

    @staticmethod
    def _parse(r: requests.Response) -> Dict[str, Any]:
        try:
            body = r.json() if r.content else {}
        except ValueError:
            body = {}
        if r.status_code >= 400:
            message = (
                body.get("error_description")
                or body.get("msg")
                or body.get("message")
                or f"Auth request failed with status {r.status_code}"
            )
            raise AuthError(message)
        return body

    def get_session(self) -> Optional[AuthSession]:
        return self.session

    def sign_in(self, email: str, password: str) -> AuthSession:
        body = self._post(
            "/token?grant_type=password",
            {"email": email.strip().lower(), "password": password},
        )
        self.session = _session_from_body(body)
        logger.info("Signed in as %s", self.session.user.email)
        self._emit("SIGNED_IN")
        return self.session

    def sign_up(self, email: str, password: str, display_name: str) -> Optional[AuthSession]:
        body = self._post(
            "/signup",
            {
                "email": email.strip().lower(),
                "password": password,
                "data": {"display_name": display_name.strip()},
            },
        )
        # Projects with email confirmation return the user without a session
        if not body.get("access_token"):
            logger.info("Sign-up for %s awaits email confirmation", email)
            return None
        self.session = _session_from_body(body)
        self._emit("SIGNED_IN")
        return self.session

    def refresh(self) -> AuthSession:
        if not self.session:
            raise AuthError("No session to refresh")
        body = self._post(
            "/token?grant_type=refresh_token",
            {"refresh_token": self.session.refresh_token},
        )
        self.session = _session_from_body(body)
        self._emit("TOKEN_REFRESHED")
        return self.session

    def get_user(self) -> AuthUser:
        if not self.session:
            raise AuthError("Not signed in")
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.session.access_token}",
        }
        try:
            r = self.http.get(f"{self.base_url}/auth/v1/user", headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise AuthError(str(e)) from e
        user = AuthUser.from_dict(self._parse(r))
        self.session.user = user
        return user

    def sign_out(self) -> None:
        if self.session:
            try:
                self._post("/logout", {}, token=self.session.access_token)
            except AuthError as e:
                # local sign-out still happens
                logger.warning("Remote sign-out failed: %s", e)
        self.session = None
        self._emit("SIGNED_OUT")
