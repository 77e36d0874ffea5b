# core/models.py
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

CATEGORIES = ("Electronics", "Jewelry", "Vehicle", "Document", "Other")
STATUSES = ("safe", "stolen", "unknown")
ALLOWED_EXTENSIONS = ("jpg", "jpeg", "png", "webp", "heic", "heif")

SERIAL_MAX_LENGTH = 40
MAX_PICKED_IMAGES = 6


@dataclass
class StagedImage:
    """
    An image attached to a draft before it is durably stored.
    kind "file" is a device pick awaiting upload (payload holds the base64
    content when the picker provided it); kind "url" is already hosted.
    """
    id: str
    kind: str
    uri: str
    filename: Optional[str] = None
    payload: Optional[str] = None


@dataclass
class DraftItem:
    name: str = ""
    serial: str = ""
    category: str = CATEGORIES[0]
    status: str = STATUSES[0]
    description: str = ""
    owner: str = ""
    email: str = ""
    phone: str = ""
    images: List[StagedImage] = field(default_factory=list)


@dataclass
class PendingPayment:
    reference: str
    email: str
    amount: int
    ts: int

    def to_json(self) -> str:
        return json.dumps(
            {"reference": self.reference, "email": self.email, "amount": self.amount, "ts": self.ts}
        )

    @classmethod
    def from_json(cls, raw: str) -> Optional["PendingPayment"]:
        try:
            data = json.loads(raw or "{}")
        except ValueError:
            return None
        if not isinstance(data, dict) or not data.get("reference"):
            return None
        return cls(
            reference=str(data["reference"]),
            email=data.get("email") or "",
            amount=int(data.get("amount") or 0),
            ts=int(data.get("ts") or 0),
        )


@dataclass
class PaymentSession:
    authorization_url: str
    reference: str
    amount: int


@dataclass
class PaymentConfig:
    fee_ngn: int
    fee_kobo: int


@dataclass
class ApiResponse:
    """Envelope every REST call resolves to; transport failures included."""
    data: Any = None
    error: Optional[Dict[str, Any]] = None
    message: Optional[str] = None
    status: Optional[int] = None

    @property
    def ok(self) -> bool:
        return not self.error


@dataclass
class PaginatedResponse(ApiResponse):
    count: int = 0
    next: Optional[str] = None
    previous: Optional[str] = None


@dataclass
class ItemsAnalytics:
    totals: Dict[str, int] = field(
        default_factory=lambda: {"total": 0, "safe": 0, "stolen": 0, "unknown": 0}
    )
    ratios: Dict[str, float] = field(
        default_factory=lambda: {"safe": 0, "stolen": 0, "unknown": 0}
    )
    last_updated_at: Optional[str] = None
    recent: Dict[str, int] = field(
        default_factory=lambda: {"added_last_30d": 0, "stolen_last_30d": 0}
    )
    top_categories: List[Dict[str, Any]] = field(default_factory=list)
    recent_items: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ItemsAnalytics":
        empty = cls()
        return cls(
            totals={**empty.totals, **(data.get("totals") or {})},
            ratios={**empty.ratios, **(data.get("ratios") or {})},
            last_updated_at=data.get("last_updated_at"),
            recent={**empty.recent, **(data.get("recent") or {})},
            top_categories=list(data.get("top_categories") or []),
            recent_items=list(data.get("recent_items") or []),
        )


@dataclass
class AuthUser:
    id: str
    email: str = ""
    phone: str = ""
    user_metadata: Dict[str, Any] = field(default_factory=dict)
    email_confirmed_at: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuthUser":
        return cls(
            id=str(data.get("id") or ""),
            email=data.get("email") or "",
            phone=data.get("phone") or "",
            user_metadata=dict(data.get("user_metadata") or {}),
            email_confirmed_at=data.get("email_confirmed_at"),
            created_at=data.get("created_at"),
        )


@dataclass
class AuthSession:
    access_token: str
    refresh_token: str
    expires_at: int
    user: AuthUser
