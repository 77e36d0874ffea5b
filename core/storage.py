# core/storage.py
import os
import sqlite3
from contextlib import closing
import datetime
import pytz
from typing import Optional

from .logger import DATA_DIR, get_logger

logger = get_logger(__name__)

DB_PATH = os.getenv("DB_PATH", os.path.join(DATA_DIR, "catcher_state.sqlite3"))

PENDING_PAYMENT_KEY = "@catcher/pending-payment"
PAID_PAYMENT_REF_KEY = "@catcher/paid-ref"


def now_utc_iso() -> str:
    return datetime.datetime.now(tz=pytz.UTC).isoformat()


class KeyValueStore:
    """
    Small persistent string store backed by SQLite.
    Survives process restarts, which is what payment recovery relies on.
    """

    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path
        self.ensure_db()

    def _connect(self):
        folder = os.path.dirname(self.db_path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        return sqlite3.connect(self.db_path)

    def ensure_db(self):
        with closing(self._connect()) as con:
            cur = con.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT,
                    updated_at TEXT
                )
            """
            )
            con.commit()

    def get(self, key: str) -> Optional[str]:
        with closing(self._connect()) as con:
            cur = con.cursor()
            cur.execute("SELECT value FROM kv WHERE key=?", (key,))
            row = cur.fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with closing(self._connect()) as con:
            cur = con.cursor()
            cur.execute(
                """
                INSERT INTO kv (key, value, updated_at)
                VALUES (?,?,?)
                ON CONFLICT(key) DO UPDATE SET
                    value=excluded.value,
                    updated_at=excluded.updated_at
            """,
                (key, value, now_utc_iso()),
            )
            con.commit()
        logger.debug("Stored key %s", key)

    def remove(self, key: str) -> None:
        with closing(self._connect()) as con:
            cur = con.cursor()
            cur.execute("DELETE FROM kv WHERE key=?", (key,))
            con.commit()
        logger.debug("Removed key %s", key)

    def keys(self) -> list[str]:
        with closing(self._connect()) as con:
            cur = con.cursor()
            cur.execute("SELECT key FROM kv ORDER BY key")
            rows = cur.fetchall()
        return [r[0] for r in rows]
