# core/wizard.py
from typing import Any, Dict, Iterable, List, Optional

from .images import ImageReadError, ImageStaging, StorageError
from .lifecycle import ACTIVE
from .logger import get_logger
from .models import DraftItem, StagedImage
from .payments import PAYMENT_CALLBACK_URL, PaymentGate, PaymentRecovery
from .validation import is_valid_email, normalize_serial, validate_draft

logger = get_logger(__name__)

STEP_TITLES = {
    0: "Basics",
    1: "Classification",
    2: "Media",
    3: "Owner",
    4: "Review",
}
LAST_STEP = max(STEP_TITLES)

# fields that must be clean before leaving a step
STEP_FIELDS = {
    0: ("name", "serial"),
    1: ("category", "status"),
    2: (),
    3: ("email",),
    4: (),
}

TEXT_FIELDS = ("name", "serial", "description", "owner", "email", "phone")


def build_item_payload(draft: DraftItem, images: List[StagedImage], fee_ngn: int) -> Dict[str, Any]:
    urls = [img.uri for img in images]
    return {
        "name": draft.name.strip(),
        "serial_number": normalize_serial(draft.serial),
        "category": draft.category,
        "status": draft.status,
        "description": draft.description.strip() or None,
        "owner": draft.owner.strip() or None,
        "email": draft.email.strip() or None,
        "phone": draft.phone.strip() or None,
        "images": urls,
        "image_url": urls[0] if urls else None,
        "fee": fee_ngn,
    }


class RegisterItemWizard:
    """
    Five-step item registration with the payment gate in front of the
    create call. One instance lives as long as the create screen.
    """

    def __init__(self, api, storage, store, alerts, app_state=None, callback_url: Optional[str] = None):
        self.api = api
        self.storage = storage
        self.alerts = alerts
        self.app_state = app_state

        self.recovery = PaymentRecovery(api, store, alerts)
        if callback_url is None:
            callback_url = PAYMENT_CALLBACK_URL
        self.gate = PaymentGate(api, self.recovery, alerts, callback_url=callback_url)

        self.draft = DraftItem()
        self.staging = ImageStaging(alerts)
        self.step = 0
        self.errors: Dict[str, str] = {}
        self.submitting = False
        self.credits: Optional[int] = None
        self.mounted = False
        self._remove_listener = None

    # -- lifecycle ----------------------------------------------------------

    def mount(self) -> None:
        self.mounted = True
        self.gate.load_config()
        credits = self.gate.fetch_credits()
        if credits is not None:
            self.credits = credits
        if self.app_state is not None:
            self._remove_listener = self.app_state.add_listener(self._on_app_state)
        self.recovery.recover()

    def unmount(self) -> None:
        self.mounted = False
        if self._remove_listener:
            self._remove_listener()
            self._remove_listener = None

    def _on_app_state(self, state: str) -> None:
        if state == ACTIVE and self.mounted:
            self.recovery.recover()

    # -- form state ---------------------------------------------------------

    @property
    def title(self) -> str:
        return STEP_TITLES[self.step]

    @property
    def progress_pct(self) -> float:
        return (self.step + 1) / len(STEP_TITLES) * 100

    @property
    def next_enabled(self) -> bool:
        if self.step == 0:
            return bool(self.draft.name.strip()) and bool(self.draft.serial.strip())
        if self.step == 1:
            return bool(self.draft.category) and bool(self.draft.status)
        return True

    @property
    def has_verified_payment(self) -> bool:
        return bool(self.credits and self.credits > 0)

    def set_field(self, field: str, value: str) -> Dict[str, str]:
        if field not in TEXT_FIELDS and field not in ("category", "status"):
            raise ValueError(f"Unknown draft field: {field}")
        if field == "serial":
            value = normalize_serial(value)
        setattr(self.draft, field, value)
        self.errors = validate_draft(self.draft)
        return self.errors

    def step_errors(self, step: Optional[int] = None) -> Dict[str, str]:
        step = self.step if step is None else step
        self.errors = validate_draft(self.draft)
        return {k: v for k, v in self.errors.items() if k in STEP_FIELDS[step]}

    def go(self, direction: int) -> int:
        if direction > 0 and (not self.next_enabled or self.step_errors()):
            return self.step
        self.step = min(LAST_STEP, max(0, self.step + direction))
        return self.step

    def next(self) -> int:
        return self.go(1)

    def back(self) -> int:
        return self.go(-1)

    # -- images -------------------------------------------------------------

    @property
    def images(self) -> List[StagedImage]:
        return self.staging.images

    def _sync_images(self) -> None:
        self.draft.images = list(self.staging.images)

    def add_url_image(self, url: str) -> bool:
        added = self.staging.add_url(url)
        self._sync_images()
        return added

    def pick_images(self, assets: Iterable[Dict[str, Any]], permission_granted: bool = True) -> int:
        added = self.staging.add_picked(assets, permission_granted)
        self._sync_images()
        return added

    def remove_image(self, image_id: str) -> None:
        self.staging.remove(image_id)
        self._sync_images()

    # -- payment surface ----------------------------------------------------

    def on_payment_navigation(self, url: str) -> bool:
        """
        Called by the embedded checkout on each navigation. A navigation that
        counts as completion triggers a verify and, if paid, the submit.
        """
        session = self.gate.session
        if session is None or not self.gate.visible or self.recovery.verified:
            return False
        if not self.gate.is_completion(url):
            return False
        if not self.recovery.verify(session.reference, silent=True):
            return False
        return self.submit(skip_payment_check=True)

    def verify_payment_and_submit(self) -> bool:
        """Explicit "I have paid" action."""
        session = self.gate.session
        record = self.recovery.pending()
        reference = session.reference if session else (record.reference if record else None)
        if not reference:
            self.alerts.show("Payment not found", "There is no payment to verify.")
            return False
        if not self.recovery.verify(reference):
            return False
        return self.submit(skip_payment_check=True)

    def close_payment(self) -> None:
        self.gate.close()

    # -- submission ---------------------------------------------------------

    def submit(self, skip_payment_check: bool = False) -> bool:
        if self.submitting:
            logger.debug("Submit ignored; one already in flight")
            return False

        errors = validate_draft(self.draft)
        if errors:
            self.errors = errors
            self.alerts.show("Missing details", next(iter(errors.values())))
            return False

        self.submitting = True
        try:
            if not self._ensure_paid(skip_payment_check):
                return False

            self.gate.close()
            try:
                images = self.staging.upload(self.storage)
            except (StorageError, ImageReadError) as e:
                logger.error("Image upload failed: %s", e)
                self.alerts.show("Upload Failed", str(e))
                return False
            self._sync_images()

            payload = build_item_payload(self.draft, images, self.gate.fee_ngn)
            resp = self.api.create_item(payload)
            if resp.error:
                logger.error("Item registration failed: %s", resp.message)
                self.alerts.show(
                    "Registration Failed",
                    resp.message or "Unable to register item right now. Please try again.",
                )
                return False

            self.alerts.show("Registration Successful", "Your item has been registered successfully.")
            self._reset_after_success()
            return True
        finally:
            self.submitting = False

    def _ensure_paid(self, just_verified: bool = False) -> bool:
        """
        Gate in front of item creation. The server credit count is fetched on
        every attempt; `just_verified` is only set by the checkout callbacks
        right after a successful verify.
        """
        credits = self.gate.fetch_credits()
        if credits is not None:
            self.credits = credits
        if just_verified:
            return True
        if credits is None:
            self.alerts.show(
                "Payment check failed",
                "Unable to confirm your registration credits. Please try again.",
            )
            return False
        if credits > 0:
            return True

        if self.recovery.paid_ref and self.recovery.pending() is None:
            # Paid earlier but not credited yet; don't open a second checkout this time
            logger.warning(
                "Payment %s verified but server reports no credits", self.recovery.paid_ref
            )
            self.recovery.forget_paid()
            self.alerts.show(
                "Payment processing",
                "Your payment was confirmed but the credit is not available yet. Please try again shortly.",
            )
            return False

        email = self.draft.email.strip()
        if not is_valid_email(email):
            self.alerts.show(
                "Email required", "Provide a valid email address in Owner step to continue to payment."
            )
            return False

        # server has no credit, so any earlier in-session verify is stale
        self.recovery.verified = False
        session = self.gate.launch(email)
        # launch() may settle an earlier outstanding payment instead
        return session is None and self.recovery.verified

    def _reset_after_success(self) -> None:
        category, status = self.draft.category, self.draft.status
        self.draft = DraftItem(category=category, status=status)
        self.staging.clear()
        self.step = 0
        self.errors = {}
        self.recovery.consume()
        self.gate.session = None
        credits = self.gate.fetch_credits()
        if credits is not None:
            self.credits = credits
