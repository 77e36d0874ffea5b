"""
Pytest configuration and fixtures for client tests
"""
import json
import os
import sys

os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest
import requests
from unittest.mock import MagicMock

from core.alerts import Alerts
from core.models import ApiResponse
from core.storage import KeyValueStore


def make_response(status_code=200, body=None, url="https://api.test/"):
    """Build a real requests.Response carrying a JSON body."""
    r = requests.Response()
    r.status_code = status_code
    r.url = url
    r.headers["Content-Type"] = "application/json"
    r._content = json.dumps(body).encode() if body is not None else b""
    return r


@pytest.fixture
def store(tmp_path):
    """Fresh on-disk key-value store per test"""
    return KeyValueStore(db_path=str(tmp_path / "state.sqlite3"))


@pytest.fixture
def alerts():
    return Alerts()


@pytest.fixture
def api():
    """REST client double with a zero-credit account and a happy payment path"""
    fake = MagicMock()
    fake.get_payment_config.return_value = ApiResponse(data={"fee_ngn": 5000, "fee_kobo": 500000})
    fake.get_credits.return_value = ApiResponse(data={"available": 0})
    fake.initiate_payment.return_value = ApiResponse(
        data={
            "authorization_url": "https://checkout.paystack.com/abc123",
            "reference": "ref_1",
            "amount": 500000,
        }
    )
    fake.verify_payment.return_value = ApiResponse(
        data={"verified": True, "status": "success", "reference": "ref_1", "amount": 500000}
    )
    fake.create_item.return_value = ApiResponse(data={"id": "item-1"}, status=201)
    return fake


@pytest.fixture
def object_storage():
    """Object storage double that returns a deterministic public URL"""
    fake = MagicMock()
    fake.upload.side_effect = lambda path, body, content_type: f"https://cdn.test/images/{path}"
    return fake


@pytest.fixture
def sample_draft_fields():
    return {
        "name": "MacBook Pro 14",
        "serial": "mbp14 9x2k ab71",
        "owner": "Ada Obi",
        "email": "ada@example.com",
        "phone": "08030000000",
        "description": "Space gray, scratch near hinge",
    }
