"""
Test cases for the REST client envelope handling
"""
from unittest.mock import MagicMock

import pytest
import requests

from conftest import make_response
from core.models import ItemsAnalytics, PaginatedResponse
from services.api import CatcherApi


@pytest.fixture
def http():
    return MagicMock()


@pytest.fixture
def client(http):
    return CatcherApi(
        base_url="https://api.test/v1/",
        token_provider=lambda: "tok_123",
        http=http,
        read_retries=2,
    )


def test_create_item_success(client, http):
    http.request.return_value = make_response(
        201, {"data": {"id": "it_1"}, "error": None, "message": "created", "status": 201}
    )

    resp = client.create_item({"name": "Phone"})

    assert resp.ok
    assert resp.data == {"id": "it_1"}
    assert resp.status == 201
    method, url = http.request.call_args.args
    assert (method, url) == ("POST", "https://api.test/v1/items/")
    assert http.request.call_args.kwargs["json"] == {"name": "Phone"}
    assert http.request.call_args.kwargs["headers"] == {"Authorization": "Bearer tok_123"}


def test_logical_error_in_200_body(client, http):
    http.request.return_value = make_response(
        200, {"data": None, "error": {"message": "duplicate serial"}, "message": "duplicate serial"}
    )

    resp = client.create_item({"name": "Phone"})

    assert not resp.ok
    assert resp.message == "duplicate serial"


def test_http_error_uses_server_message(client, http):
    http.request.return_value = make_response(400, {"message": "Serial number is required"})

    resp = client.create_item({})

    assert resp.error == {"message": "Serial number is required"}
    assert resp.status == 400
    assert resp.data is None


def test_transport_error_on_credits_defaults_to_zero(client, http):
    """
    Test: Network failure while reading credits
    Confirm: No exception, available falls back to 0, single attempt
    """
    http.request.side_effect = requests.ConnectionError("no route to host")

    resp = client.get_credits()

    assert resp.data == {"available": 0}
    assert "no route to host" in resp.message
    assert resp.status is None
    assert http.request.call_count == 1


def test_get_items_paginated_and_filters(client, http):
    http.request.return_value = make_response(
        200, {"data": [{"id": "1"}], "count": 41, "next": "/items/?offset=20", "previous": None}
    )

    resp = client.get_items(limit=20, offset=0, status="stolen")

    assert isinstance(resp, PaginatedResponse)
    assert resp.count == 41
    assert resp.data == [{"id": "1"}]
    assert http.request.call_args.kwargs["params"] == {"limit": 20, "offset": 0, "status": "stolen"}


def test_read_calls_retry_transient_errors(client, http):
    http.request.side_effect = [
        requests.ConnectionError("reset"),
        make_response(200, {"data": {"id": "9"}}),
    ]

    resp = client.get_item("9")

    assert resp.data == {"id": "9"}
    assert http.request.call_count == 2


def test_read_retry_gives_up_with_envelope(client, http):
    http.request.side_effect = requests.Timeout("slow")

    resp = client.get_items()

    assert resp.data == []
    assert resp.count == 0
    assert resp.message == "slow"
    assert http.request.call_count == 2


def test_verify_payment_is_not_retried(client, http):
    http.request.side_effect = requests.ConnectionError("down")

    resp = client.verify_payment("ref_1")

    assert resp.data is None
    assert http.request.call_count == 1
    assert http.request.call_args.kwargs["params"] == {"reference": "ref_1"}


def test_analytics_fallback_and_parse(client, http):
    http.request.return_value = make_response(500, {"message": "boom"})
    resp = client.get_items_analytics()
    assert isinstance(resp.data, ItemsAnalytics)
    assert resp.data.totals["total"] == 0
    assert resp.message == "boom"

    http.request.return_value = make_response(
        200,
        {"data": {"totals": {"total": 3, "stolen": 1}, "top_categories": [{"category": "Vehicle", "count": 2}]}},
    )
    resp = client.get_items_analytics()
    assert resp.data.totals == {"total": 3, "safe": 0, "stolen": 1, "unknown": 0}
    assert resp.data.top_categories[0]["category"] == "Vehicle"


def test_search_registry_drops_empty_filters(client, http):
    http.request.return_value = make_response(200, {"data": [], "count": 0})

    client.search_registry("SN123", status="stolen")

    assert http.request.call_args.kwargs["json"] == {"query": "SN123", "status": "stolen"}


def test_no_token_no_auth_header(http):
    client = CatcherApi(base_url="https://api.test", http=http)
    http.request.return_value = make_response(200, {"data": {}})
    client.get_user_profile()
    assert http.request.call_args.kwargs["headers"] == {}
