# core/payments.py
import os
import time
from typing import Optional

from .logger import get_logger
from .models import PaymentConfig, PaymentSession, PendingPayment
from .storage import PAID_PAYMENT_REF_KEY, PENDING_PAYMENT_KEY
from .validation import is_valid_email

logger = get_logger(__name__)

DEFAULT_FEE_NGN = int(os.getenv("DEFAULT_FEE_NGN", "5000"))
PAYMENT_CALLBACK_URL = os.getenv("PAYMENT_CALLBACK_URL", "").strip()

NO_PAYMENT = "no-payment"
PENDING = "pending"
VERIFIED = "verified"


class PaymentRecovery:
    """
    Tracks the single outstanding payment for this device.

    A pending record is written as soon as a checkout session exists and is
    removed the moment the server confirms it, so a payment started before
    the app was killed can be confirmed on the next foreground.
    """

    def __init__(self, api, store, alerts):
        self.api = api
        self.store = store
        self.alerts = alerts
        # in-memory only; set by a successful verify in this session
        self.verified = False
        self.paid_ref: Optional[str] = None

    @property
    def state(self) -> str:
        if self.verified:
            return VERIFIED
        if self.pending() is not None:
            return PENDING
        return NO_PAYMENT

    def pending(self) -> Optional[PendingPayment]:
        raw = self.store.get(PENDING_PAYMENT_KEY)
        if not raw:
            return None
        record = PendingPayment.from_json(raw)
        if record is None:
            logger.warning("Discarding unreadable pending payment record")
            self.store.remove(PENDING_PAYMENT_KEY)
        return record

    def record_pending(self, reference: str, email: str, amount: int) -> PendingPayment:
        record = PendingPayment(
            reference=reference, email=email, amount=amount, ts=int(time.time() * 1000)
        )
        self.store.set(PENDING_PAYMENT_KEY, record.to_json())
        logger.info("Payment %s pending (amount=%s)", reference, amount)
        return record

    def mark_verified(self, reference: str) -> None:
        self.store.set(PAID_PAYMENT_REF_KEY, reference)
        self.store.remove(PENDING_PAYMENT_KEY)
        self.verified = True
        self.paid_ref = reference
        logger.info("Payment %s verified", reference)

    def verify(self, reference: str, silent: bool = False) -> bool:
        """
        Ask the server whether `reference` is paid. Calling it again for a
        reference that is already verified or cleared changes nothing.
        """
        resp = self.api.verify_payment(reference)
        if resp.error or not isinstance(resp.data, dict):
            logger.warning("Verify call for %s failed: %s", reference, resp.message)
            if not silent:
                self.alerts.show(
                    "Payment verification failed", resp.message or "Could not verify payment"
                )
            return False

        if not resp.data.get("verified"):
            logger.info("Payment %s not verified yet (status=%s)", reference, resp.data.get("status"))
            if not silent:
                self.alerts.show("Payment not verified", "We could not verify your payment.")
            return False

        self.mark_verified(reference)
        return True

    def recover(self) -> bool:
        """Silently re-check a persisted pending payment. True if it is now paid."""
        paid_ref = self.store.get(PAID_PAYMENT_REF_KEY)
        if paid_ref:
            self.paid_ref = paid_ref

        record = self.pending()
        if record is None:
            return False
        logger.info("Re-verifying pending payment %s", record.reference)
        return self.verify(record.reference, silent=True)

    def forget_paid(self) -> None:
        self.store.remove(PAID_PAYMENT_REF_KEY)
        self.verified = False
        self.paid_ref = None

    def consume(self) -> None:
        """Forget all payment state once a registration used the credit."""
        self.store.remove(PENDING_PAYMENT_KEY)
        self.forget_paid()


class PaymentGate:
    """Credit check and hosted checkout launch in front of item creation."""

    def __init__(self, api, recovery: PaymentRecovery, alerts, callback_url: str = PAYMENT_CALLBACK_URL):
        self.api = api
        self.recovery = recovery
        self.alerts = alerts
        self.callback_url = callback_url
        self.config: Optional[PaymentConfig] = None
        self.session: Optional[PaymentSession] = None
        self.visible = False

    def load_config(self) -> Optional[PaymentConfig]:
        resp = self.api.get_payment_config()
        if resp.error or not isinstance(resp.data, dict):
            logger.warning("Payment config unavailable, using default fee: %s", resp.message)
            return None
        fee_ngn = int(resp.data.get("fee_ngn") or DEFAULT_FEE_NGN)
        fee_kobo = int(resp.data.get("fee_kobo") or fee_ngn * 100)
        self.config = PaymentConfig(fee_ngn=fee_ngn, fee_kobo=fee_kobo)
        return self.config

    @property
    def fee_ngn(self) -> int:
        return self.config.fee_ngn if self.config else DEFAULT_FEE_NGN

    @property
    def fee_kobo(self) -> int:
        return self.config.fee_kobo if self.config else DEFAULT_FEE_NGN * 100

    def fetch_credits(self) -> Optional[int]:
        """Authoritative credit count, or None when the server can't be asked."""
        resp = self.api.get_credits()
        if resp.error:
            logger.error("Credits lookup failed: %s", resp.message)
            return None
        data = resp.data if isinstance(resp.data, dict) else {}
        try:
            return int(data.get("available") or 0)
        except (TypeError, ValueError):
            logger.error("Unexpected credits payload: %s", resp.data)
            return None

    def launch(self, email: str) -> Optional[PaymentSession]:
        if not is_valid_email(email):
            self.alerts.show(
                "Invalid Email", "Please provide a valid email address in the Owner step."
            )
            return None

        # Only one pending payment is tracked; settle the old one first
        existing = self.recovery.pending()
        if existing is not None:
            if self.recovery.verify(existing.reference, silent=True):
                logger.info("Earlier payment %s was completed; not starting another", existing.reference)
                return None

        resp = self.api.initiate_payment(email)
        data = resp.data if isinstance(resp.data, dict) else None
        if resp.error or not data or not data.get("authorization_url") or not data.get("reference"):
            self.alerts.show("Payment init failed", resp.message or "Unable to start payment")
            return None

        session = PaymentSession(
            authorization_url=data["authorization_url"],
            reference=data["reference"],
            amount=int(data.get("amount") or self.fee_kobo),
        )
        if existing is not None:
            logger.warning(
                "Payment %s was never confirmed; replaced by %s",
                existing.reference, session.reference,
            )
        self.recovery.record_pending(session.reference, email, session.amount)
        self.session = session
        self.visible = True
        return session

    def is_completion(self, url: str) -> bool:
        if not self.callback_url:
            return True
        return (url or "").startswith(self.callback_url)

    def close(self) -> None:
        self.visible = False
