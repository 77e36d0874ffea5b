# core/validation.py
import re
from typing import Dict

from .models import CATEGORIES, SERIAL_MAX_LENGTH, STATUSES, DraftItem

# Stricter form used before money changes hands
PAYMENT_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# Looser form used by the auth screens
AUTH_EMAIL_RE = re.compile(r"\S+@\S+\.\S+")
HTTP_URL_RE = re.compile(r"^https?://", re.IGNORECASE)

MIN_PASSWORD_LENGTH = 6
MIN_DISPLAY_NAME_LENGTH = 2


def normalize_serial(value: str) -> str:
    """Strip all whitespace, cap at 40 chars, uppercase."""
    cleaned = re.sub(r"\s+", "", value or "")
    return cleaned[:SERIAL_MAX_LENGTH].upper()


def is_valid_email(value: str) -> bool:
    return bool(PAYMENT_EMAIL_RE.match(value or ""))


def is_http_url(value: str) -> bool:
    return bool(HTTP_URL_RE.match(value or ""))


def validate_draft(draft: DraftItem) -> Dict[str, str]:
    """
    Return a mapping field -> message for everything wrong with the draft.
    An empty dict means the draft can be submitted.
    """
    errors: Dict[str, str] = {}

    if not draft.name.strip():
        errors["name"] = "Item name is required"

    if not draft.serial.strip():
        errors["serial"] = "Serial number is required"
    elif len(draft.serial) > SERIAL_MAX_LENGTH:
        errors["serial"] = f"Serial number must be at most {SERIAL_MAX_LENGTH} characters"

    if draft.category not in CATEGORIES:
        errors["category"] = "Select a category"

    if draft.status not in STATUSES:
        errors["status"] = "Select a status"

    email = draft.email.strip()
    if email and not is_valid_email(email):
        errors["email"] = "Please enter a valid email"

    return errors


def validate_login(email: str, password: str) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    if not email.strip():
        errors["email"] = "Email is required"
    elif not AUTH_EMAIL_RE.search(email):
        errors["email"] = "Please enter a valid email"

    if not password:
        errors["password"] = "Password is required"
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"

    return errors


def validate_registration(
    display_name: str, email: str, password: str, confirm_password: str
) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    if not display_name.strip():
        errors["display_name"] = "Display name is required"
    elif len(display_name.strip()) < MIN_DISPLAY_NAME_LENGTH:
        errors["display_name"] = (
            f"Display name must be at least {MIN_DISPLAY_NAME_LENGTH} characters"
        )

    login_errors = validate_login(email, password)
    errors.update(login_errors)

    if not confirm_password:
        errors["confirm_password"] = "Please confirm your password"
    elif password != confirm_password:
        errors["confirm_password"] = "Passwords do not match"

    return errors
