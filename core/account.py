# core/account.py
import datetime
from typing import Any, Dict, Optional

from services.auth import AuthError

from .logger import get_logger
from .navigation import LOGIN
from .validation import validate_login, validate_registration

logger = get_logger(__name__)

DELETE_CONFIRMATION = "DELETE"

WARNING = "warning"
CONFIRMATION = "confirmation"
FINAL = "final"


def display_name(user, profile: Optional[Dict[str, Any]] = None) -> str:
    if profile and profile.get("display_name"):
        return profile["display_name"]
    if user is not None:
        meta = user.user_metadata or {}
        name = meta.get("full_name") or meta.get("display_name")
        if name:
            return name
        if user.email:
            return user.email.split("@")[0]
    return "User"


def member_since(user) -> str:
    raw = getattr(user, "created_at", None)
    try:
        when = datetime.datetime.fromisoformat(raw.replace("Z", "+00:00")) if raw else None
    except ValueError:
        when = None
    when = when or datetime.datetime.now()
    return when.strftime("%B %Y")


def profile_summary(user, profile: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    meta = (user.user_metadata or {}) if user else {}
    return {
        "display_name": display_name(user, profile),
        "email": user.email if user else "",
        "phone": meta.get("phone") or (user.phone if user else ""),
        "email_verified": bool(user and user.email_confirmed_at),
        "member_since": member_since(user),
        "short_id": f"{user.id[:8]}..." if user and user.id else "",
    }


class AuthForms:
    """Login and registration with client-side validation in front of the auth provider."""

    def __init__(self, auth):
        self.auth = auth
        self.errors: Dict[str, str] = {}
        self.auth_error: Optional[str] = None

    def login(self, email: str, password: str) -> bool:
        self.errors = validate_login(email, password)
        self.auth_error = None
        if self.errors:
            return False
        try:
            self.auth.sign_in(email.strip().lower(), password)
        except AuthError as e:
            self.auth_error = str(e) or "Unable to sign in right now. Please try again."
            logger.error("Login failed: %s", e)
            return False
        return True

    def register(self, display_name: str, email: str, password: str, confirm_password: str) -> bool:
        self.errors = validate_registration(display_name, email, password, confirm_password)
        self.auth_error = None
        if self.errors:
            return False
        try:
            self.auth.sign_up(email.strip().lower(), password, display_name.strip())
        except AuthError as e:
            self.auth_error = str(e) or "Unable to register right now. Please try again."
            logger.error("Registration failed: %s", e)
            return False
        return True


class AccountDeletionFlow:
    """warning -> confirmation -> final; deletion needs the literal DELETE."""

    def __init__(self, api, auth, router, alerts):
        self.api = api
        self.auth = auth
        self.router = router
        self.alerts = alerts
        self.step = WARNING
        self.confirm_text = ""
        self.reason = ""
        self.pending = False

    @property
    def can_continue(self) -> bool:
        return self.confirm_text == DELETE_CONFIRMATION

    def proceed(self) -> str:
        if self.step == WARNING:
            self.step = CONFIRMATION
        elif self.step == CONFIRMATION and self.can_continue:
            self.step = FINAL
        return self.step

    def cancel(self) -> None:
        self.step = WARNING
        self.confirm_text = ""
        self.reason = ""

    def delete(self) -> bool:
        if self.step != FINAL or not self.can_continue or self.pending:
            return False
        self.pending = True
        try:
            resp = self.api.delete_account(self.reason.strip() or None)
            if resp.error:
                self.alerts.show("Account deletion failed", resp.message or "Unable to delete account")
                return False
            self.cancel()
            self.auth.sign_out()
            self.router.reset(LOGIN)
            return True
        finally:
            self.pending = False
