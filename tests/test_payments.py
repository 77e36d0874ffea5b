"""
Test cases for the payment gate and payment recovery
"""
import json

from core.models import ApiResponse
from core.payments import (
    NO_PAYMENT,
    PENDING,
    VERIFIED,
    PaymentGate,
    PaymentRecovery,
)
from core.storage import PAID_PAYMENT_REF_KEY, PENDING_PAYMENT_KEY


def _pending(store, reference="ref_old"):
    store.set(
        PENDING_PAYMENT_KEY,
        json.dumps({"reference": reference, "email": "a@b.co", "amount": 500000, "ts": 1}),
    )


def test_recover_without_record_makes_no_call(api, store, alerts):
    recovery = PaymentRecovery(api, store, alerts)
    assert recovery.recover() is False
    assert recovery.state == NO_PAYMENT
    assert not api.verify_payment.called


def test_recover_clears_pending_when_verified(api, store, alerts):
    """
    Test: App relaunch with a pending payment that is now paid
    Confirm: Verified once, pending key cleared, no alert
    """
    _pending(store, "ref_old")
    recovery = PaymentRecovery(api, store, alerts)
    assert recovery.state == PENDING

    assert recovery.recover() is True

    api.verify_payment.assert_called_once_with("ref_old")
    assert store.get(PENDING_PAYMENT_KEY) is None
    assert store.get(PAID_PAYMENT_REF_KEY) == "ref_old"
    assert recovery.state == VERIFIED
    assert alerts.history == []

    # second foreground: nothing left to check
    assert recovery.recover() is False
    assert api.verify_payment.call_count == 1


def test_recover_not_yet_verified_stays_pending(api, store, alerts):
    _pending(store)
    api.verify_payment.return_value = ApiResponse(data={"verified": False, "status": "abandoned"})
    recovery = PaymentRecovery(api, store, alerts)

    assert recovery.recover() is False
    assert recovery.state == PENDING
    assert store.get(PENDING_PAYMENT_KEY) is not None
    assert alerts.history == []


def test_recover_transport_error_is_silent(api, store, alerts):
    _pending(store)
    api.verify_payment.return_value = ApiResponse(error={"message": "offline"}, message="offline")
    recovery = PaymentRecovery(api, store, alerts)

    assert recovery.recover() is False
    assert recovery.state == PENDING
    assert alerts.history == []


def test_explicit_verify_alerts_when_unpaid(api, store, alerts):
    api.verify_payment.return_value = ApiResponse(data={"verified": False})
    recovery = PaymentRecovery(api, store, alerts)
    assert recovery.verify("ref_x") is False
    assert alerts.last.title == "Payment not verified"


def test_corrupt_pending_record_is_dropped(api, store, alerts):
    store.set(PENDING_PAYMENT_KEY, "{not json")
    recovery = PaymentRecovery(api, store, alerts)
    assert recovery.pending() is None
    assert store.get(PENDING_PAYMENT_KEY) is None


def test_consume_clears_both_keys(api, store, alerts):
    recovery = PaymentRecovery(api, store, alerts)
    recovery.mark_verified("ref_1")
    _pending(store, "ref_2")

    recovery.consume()

    assert store.get(PENDING_PAYMENT_KEY) is None
    assert store.get(PAID_PAYMENT_REF_KEY) is None
    assert recovery.state == NO_PAYMENT


def test_launch_rejects_bad_email(api, store, alerts):
    gate = PaymentGate(api, PaymentRecovery(api, store, alerts), alerts)
    assert gate.launch("not-an-email") is None
    assert not api.initiate_payment.called
    assert alerts.last.title == "Invalid Email"


def test_launch_persists_pending_record(api, store, alerts):
    recovery = PaymentRecovery(api, store, alerts)
    gate = PaymentGate(api, recovery, alerts)

    session = gate.launch("ada@example.com")

    assert session.authorization_url == "https://checkout.paystack.com/abc123"
    assert gate.visible is True
    record = recovery.pending()
    assert record.reference == "ref_1"
    assert record.email == "ada@example.com"
    assert record.amount == 500000
    assert record.ts > 0


def test_launch_failure_alerts(api, store, alerts):
    api.initiate_payment.return_value = ApiResponse(
        error={"message": "Paystack down"}, message="Paystack down", status=502
    )
    recovery = PaymentRecovery(api, store, alerts)
    gate = PaymentGate(api, recovery, alerts)

    assert gate.launch("ada@example.com") is None
    assert alerts.last.title == "Payment init failed"
    assert alerts.last.message == "Paystack down"
    assert recovery.pending() is None


def test_launch_settles_outstanding_paid_reference(api, store, alerts):
    """
    Test: A second payment is started while an earlier one is pending but paid
    Confirm: The earlier one is promoted, no new checkout is opened
    """
    _pending(store, "ref_old")
    recovery = PaymentRecovery(api, store, alerts)
    gate = PaymentGate(api, recovery, alerts)

    assert gate.launch("ada@example.com") is None
    assert not api.initiate_payment.called
    assert recovery.verified is True
    assert store.get(PAID_PAYMENT_REF_KEY) == "ref_old"


def test_launch_replaces_unpaid_outstanding_reference(api, store, alerts):
    _pending(store, "ref_old")
    api.verify_payment.return_value = ApiResponse(data={"verified": False})
    recovery = PaymentRecovery(api, store, alerts)
    gate = PaymentGate(api, recovery, alerts)

    session = gate.launch("ada@example.com")

    assert session.reference == "ref_1"
    assert recovery.pending().reference == "ref_1"


def test_fee_falls_back_without_config(api, store, alerts):
    api.get_payment_config.return_value = ApiResponse(error={"message": "x"}, message="x")
    gate = PaymentGate(api, PaymentRecovery(api, store, alerts), alerts)
    assert gate.load_config() is None
    assert gate.fee_ngn == 5000
    assert gate.fee_kobo == 500000

    api.get_payment_config.return_value = ApiResponse(data={"fee_ngn": 2500})
    gate.load_config()
    assert gate.fee_ngn == 2500
    assert gate.fee_kobo == 250000


def test_fetch_credits(api, store, alerts):
    gate = PaymentGate(api, PaymentRecovery(api, store, alerts), alerts)
    api.get_credits.return_value = ApiResponse(data={"available": 3})
    assert gate.fetch_credits() == 3
    api.get_credits.return_value = ApiResponse(
        data={"available": 0}, error={"message": "timeout"}, message="timeout"
    )
    assert gate.fetch_credits() is None


def test_completion_url_matching(api, store, alerts):
    recovery = PaymentRecovery(api, store, alerts)
    assert PaymentGate(api, recovery, alerts, callback_url="").is_completion("https://anything")
    gate = PaymentGate(api, recovery, alerts, callback_url="https://catcher.app/paid")
    assert gate.is_completion("https://catcher.app/paid?reference=ref_1")
    assert not gate.is_completion("https://checkout.paystack.com/abc123")
