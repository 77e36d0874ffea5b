# core/alerts.py
from dataclasses import dataclass
from typing import Callable, List, Optional

from .logger import get_logger

logger = get_logger(__name__)


@dataclass
class Alert:
    title: str
    message: str


class Alerts:
    """
    Sink for blocking user-facing messages. Every alert is kept in order and
    logged; an optional presenter callback receives it as well.
    """

    def __init__(self, presenter: Optional[Callable[[Alert], None]] = None):
        self.history: List[Alert] = []
        self.presenter = presenter

    def show(self, title: str, message: str) -> None:
        alert = Alert(title, message)
        self.history.append(alert)
        logger.info("Alert: %s - %s", title, message)
        if self.presenter:
            self.presenter(alert)

    @property
    def last(self) -> Optional[Alert]:
        return self.history[-1] if self.history else None

    def titles(self) -> List[str]:
        return [a.title for a in self.history]

    def clear(self) -> None:
        self.history.clear()
