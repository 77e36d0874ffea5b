import os
import sys
from dataclasses import dataclass
from typing import List

from core.alerts import Alerts
from core.items import search_registry
from core.lifecycle import AppStateObserver
from core.logger import get_logger
from core.payments import PaymentRecovery
from core.session import SessionStore
from core.storage import KeyValueStore
from services import AuthClient, AuthError, CatcherApi, ObjectStorage

logger = get_logger(__name__)

MODE = os.getenv("MODE", "recover").lower()  # recover | search | analytics | credits
CATCHER_EMAIL = os.getenv("CATCHER_EMAIL", "").strip()
CATCHER_PASSWORD = os.getenv("CATCHER_PASSWORD", "")


@dataclass
class App:
    auth: AuthClient
    session: SessionStore
    api: CatcherApi
    storage: ObjectStorage
    store: KeyValueStore
    alerts: Alerts
    app_state: AppStateObserver


def build_app() -> App:
    """Wire every collaborator once; screens receive these by reference."""
    auth = AuthClient()
    session = SessionStore(auth)
    api = CatcherApi(token_provider=lambda: session.access_token)
    storage = ObjectStorage(token_provider=lambda: session.access_token)
    app_state = AppStateObserver()
    app_state.add_listener(session.on_app_state)
    return App(
        auth=auth,
        session=session,
        api=api,
        storage=storage,
        store=KeyValueStore(),
        alerts=Alerts(),
        app_state=app_state,
    )


def sign_in_from_env(app: App) -> bool:
    if not (CATCHER_EMAIL and CATCHER_PASSWORD):
        logger.info("No CATCHER_EMAIL/CATCHER_PASSWORD; continuing signed out.")
        return False
    try:
        app.auth.sign_in(CATCHER_EMAIL, CATCHER_PASSWORD)
    except AuthError as e:
        logger.error("Sign-in failed for %s: %s", CATCHER_EMAIL, e)
        return False
    return True


def run_recover(app: App) -> int:
    recovery = PaymentRecovery(app.api, app.store, app.alerts)
    record = recovery.pending()
    if record is None:
        logger.info("No pending payment to recover.")
        return 0
    if recovery.recover():
        logger.info("Pending payment %s is verified and cleared.", record.reference)
        return 0
    logger.info("Payment %s is still pending.", record.reference)
    return 1


def run_search(app: App, terms: List[str]) -> int:
    query = " ".join(terms)
    if not query.strip():
        logger.error("search mode needs a query, e.g. catcher.py SN12345")
        return 2
    results = search_registry(app.api, query)
    if not results:
        logger.info("No registry entries match %s.", query)
        return 1
    for it in results:
        logger.info(
            "%s  %s  [%s]  %s",
            it.get("serial_number", ""), it.get("name", ""),
            str(it.get("status", "unknown")).upper(), it.get("category", ""),
        )
    return 0


def run_analytics(app: App) -> int:
    resp = app.api.get_items_analytics()
    a = resp.data
    logger.info(
        "Registry: %d items (%d safe, %d stolen, %d unknown); last update %s",
        a.totals["total"], a.totals["safe"], a.totals["stolen"], a.totals["unknown"],
        a.last_updated_at or "n/a",
    )
    for cat in a.top_categories:
        logger.info("  %s: %s", cat.get("category"), cat.get("count"))
    return 0 if resp.ok else 1


def run_credits(app: App) -> int:
    resp = app.api.get_credits()
    if resp.error:
        logger.error("Could not read credits: %s", resp.message)
        return 1
    logger.info("Available registration credits: %s", (resp.data or {}).get("available", 0))
    return 0


def main(argv: List[str]) -> int:
    app = build_app()
    sign_in_from_env(app)
    app.session.initialize()

    if MODE == "recover":
        return run_recover(app)
    if MODE == "search":
        return run_search(app, argv)
    if MODE == "analytics":
        return run_analytics(app)
    if MODE == "credits":
        return run_credits(app)

    logger.error("Unknown MODE '%s'", MODE)
    return 2


if __name__ == "__main__":
    try:
        raise SystemExit(main(sys.argv[1:]))
    except Exception as e:
        logger.exception("Fatal catcher error: %s", e)
        raise SystemExit(2)
