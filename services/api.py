# services/api.py
import os
from typing import Any, Callable, Dict, Optional

import requests
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from core.logger import get_logger
from core.models import ApiResponse, ItemsAnalytics, PaginatedResponse

logger = get_logger(__name__)

API_URL = os.getenv("CATCHER_API_URL", "http://localhost:8000/api").rstrip("/")
API_TIMEOUT = int(os.getenv("CATCHER_API_TIMEOUT", "30"))
API_READ_RETRIES = int(os.getenv("CATCHER_API_READ_RETRIES", "3"))
USER_AGENT = os.getenv("CATCHER_USER_AGENT", "catcher-client/1.0")

# Only failures where the request may never have reached the server
TRANSIENT_ERRORS = (requests.ConnectionError, requests.Timeout)


def _error_response(exc: Exception, paginated: bool = False, data: Any = None) -> ApiResponse:
    status = None
    message = str(exc)
    response = getattr(exc, "response", None)
    if response is not None:
        status = response.status_code
        try:
            body = response.json()
            if isinstance(body, dict) and body.get("message"):
                message = body["message"]
        except ValueError:
            pass

    if paginated:
        return PaginatedResponse(
            data=data if data is not None else [],
            error={"message": message},
            message=message,
            status=status,
            count=0,
            next="",
            previous="",
        )
    return ApiResponse(data=data, error={"message": message}, message=message, status=status)


def _envelope(body: Any, http_status: int, paginated: bool = False) -> ApiResponse:
    if not isinstance(body, dict):
        body = {"data": body}

    common = dict(
        data=body.get("data"),
        error=body.get("error") or None,
        message=body.get("message"),
        status=body.get("status", http_status),
    )
    if paginated:
        return PaginatedResponse(
            **common,
            count=int(body.get("count") or 0),
            next=body.get("next"),
            previous=body.get("previous"),
        )
    return ApiResponse(**common)


class CatcherApi:
    """
    Thin wrapper around the Catcher REST microservice.
    No method raises: failures come back as an envelope with `error` set.
    """

    def __init__(
        self,
        base_url: str = API_URL,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        http: Optional[requests.Session] = None,
        timeout: int = API_TIMEOUT,
        read_retries: int = API_READ_RETRIES,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.timeout = timeout
        self.read_retries = max(1, read_retries)
        self.http = http or requests.Session()
        self.http.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})

    def _headers(self) -> Dict[str, str]:
        token = self.token_provider() if self.token_provider else None
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    def _send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.debug("%s %s params=%s", method, url, params)
        r = self.http.request(
            method,
            url,
            params=params,
            json=json_body,
            headers=self._headers(),
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r

    def _call(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        paginated: bool = False,
        retry_reads: bool = False,
        fallback: Any = None,
    ) -> ApiResponse:
        try:
            if retry_reads:
                r = self._send_with_retry(method, path, params, json_body)
            else:
                r = self._send(method, path, params, json_body)
            body = r.json() if r.content else {}
        except RetryError as e:
            exc = e.last_attempt.exception()
            logger.error("%s %s failed after retries: %s", method, path, exc)
            return _error_response(exc, paginated, fallback)
        except (requests.RequestException, ValueError) as e:
            logger.error("%s %s failed: %s", method, path, e)
            return _error_response(e, paginated, fallback)

        return _envelope(body, r.status_code, paginated)

    def _send_with_retry(self, method, path, params, json_body) -> requests.Response:
        for attempt in Retrying(
            stop=stop_after_attempt(self.read_retries),
            wait=wait_exponential_jitter(initial=0.5, max=5),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
        ):
            with attempt:
                return self._send(method, path, params, json_body)

    # -- items --------------------------------------------------------------

    def create_item(self, payload: Dict[str, Any]) -> ApiResponse:
        return self._call("POST", "/items/", json_body=payload)

    def get_items(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        status: Optional[str] = None,
        query: Optional[str] = None,
    ) -> PaginatedResponse:
        params = {
            k: v
            for k, v in (("limit", limit), ("offset", offset), ("status", status), ("query", query))
            if v is not None
        }
        return self._call("GET", "/items/", params=params, paginated=True, retry_reads=True)

    def get_item(self, item_id: str) -> ApiResponse:
        return self._call("GET", f"/items/{item_id}/", retry_reads=True)

    def update_item(self, item_id: str, data: Dict[str, Any]) -> ApiResponse:
        return self._call("PUT", f"/items/{item_id}/", json_body=data)

    def delete_item(self, item_id: str) -> ApiResponse:
        return self._call("DELETE", f"/items/{item_id}/")

    def search_registry(
        self,
        query: str,
        category: Optional[str] = None,
        status: Optional[str] = None,
        serial_number: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> PaginatedResponse:
        payload: Dict[str, Any] = {"query": query}
        for key, value in (
            ("category", category),
            ("status", status),
            ("serial_number", serial_number),
            ("limit", limit),
            ("offset", offset),
        ):
            if value is not None:
                payload[key] = value
        return self._call(
            "POST", "/registry/search/", json_body=payload, paginated=True, retry_reads=True
        )

    def get_items_analytics(self) -> ApiResponse:
        resp = self._call("GET", "/items/analytics/", retry_reads=True)
        if resp.error or not isinstance(resp.data, dict):
            resp.data = ItemsAnalytics()
        else:
            resp.data = ItemsAnalytics.from_dict(resp.data)
        return resp

    # -- profile / account --------------------------------------------------

    def get_user_profile(self) -> ApiResponse:
        return self._call("GET", "/mobile/profile/")

    def update_profile(self, profile: Dict[str, Any]) -> ApiResponse:
        return self._call("PUT", "/mobile/profile/", json_body=profile)

    def delete_account(self, reason: Optional[str] = None) -> ApiResponse:
        body = {"reason": reason} if reason else None
        return self._call("DELETE", "/account/delete/", json_body=body)

    # -- payments -----------------------------------------------------------

    def initiate_payment(self, email: str) -> ApiResponse:
        return self._call("POST", "/payments/initiate/", json_body={"email": email})

    def verify_payment(self, reference: str) -> ApiResponse:
        return self._call("GET", "/payments/verify/", params={"reference": reference})

    def get_credits(self) -> ApiResponse:
        return self._call("GET", "/payments/credits/", fallback={"available": 0})

    def get_payment_config(self) -> ApiResponse:
        return self._call("GET", "/payments/config/")
