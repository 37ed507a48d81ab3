from __future__ import annotations

import logging
import os
import secrets
import string
import time
from typing import Any, Callable, Dict, Optional

import httpx
from pydantic import ValidationError

from state.backends import BackendError, SessionBackend
from state.models import ApiResponse, Order


logger = logging.getLogger(__name__)

ENV_API_URL = "STOREFRONT_API_URL"

SESSION_ID_KEY = "sessionId"
CSRF_TOKEN = "mock-csrf-token-for-demonstration"

_ID_ALPHABET = string.ascii_lowercase + string.digits


class OrderApiError(RuntimeError):
    """Base error for the order API client."""


class OrderApiTimeoutError(OrderApiError):
    """The endpoint did not answer within the configured timeout."""


def _now_ms() -> int:
    return int(time.time() * 1000)


class OrderApiClient:
    """
    Client for the order-submission endpoint.

    Notes
    - Sends `{"action": "saveOrder", "orderData": ...}` as a JSON POST.
    - Every request carries `X-Request-ID` and `X-Session-ID`. The session id
      lives in the session backend under `sessionId` (raw, not enveloped) and
      is created on first use.
    - Retries 5xx responses and transport errors `retries` times with a fixed
      delay. Timeouts are not retried.
    - `save_order` never raises; failures come back as an unsuccessful
      `ApiResponse`.
    """

    def __init__(
        self,
        api_url: str,
        *,
        session: SessionBackend,
        timeout: float = 15.0,
        retries: int = 2,
        retry_delay: float = 1.0,
        client: Optional[httpx.Client] = None,
        clock: Callable[[], int] = _now_ms,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not api_url:
            raise ValueError("api_url is required")
        if retries < 0:
            raise ValueError("retries must be >= 0")
        self._api_url = api_url
        self._session = session
        self._timeout = timeout
        self._retries = retries
        self._retry_delay = retry_delay
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=self._timeout)
        self._clock = clock
        self._sleep = sleep

    @classmethod
    def from_env(cls, session: SessionBackend, **kwargs: Any) -> "OrderApiClient":
        url = os.environ.get(ENV_API_URL)
        if not url:
            raise RuntimeError(f"Missing required configuration: {ENV_API_URL}")
        return cls(url, session=session, **kwargs)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "OrderApiClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------------- Public API ---------------
    def save_order(self, order: Order) -> ApiResponse:
        """Submit `order`. Returns the endpoint's response, or a failure response."""
        body = {"action": "saveOrder", "orderData": order.model_dump(exclude_none=True)}
        try:
            data = self._request(body)
            try:
                result = ApiResponse.model_validate(data)
            except ValidationError as ve:
                raise OrderApiError("Malformed response from order API") from ve
            if not result.success:
                logger.error("API reported failure: %s", result.message)
                raise OrderApiError(result.message or "The API service reported a failure.")
            return result
        except OrderApiError as ex:
            logger.error("Failed to save order %s: %s", order.orderNumber, ex)
            return ApiResponse(success=False, message=f"Submission failed: {ex}")

    def session_id(self) -> str:
        sid = None
        try:
            sid = self._session.get(SESSION_ID_KEY)
            if not sid:
                sid = f"session-{self._clock()}"
                self._session.set(SESSION_ID_KEY, sid)
        except BackendError:
            logger.warning("Could not persist session id; using an ephemeral one")
        return sid or f"session-{self._clock()}"

    # --------------- Internal ---------------
    def _request_id(self) -> str:
        suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(7))
        return f"req-{self._clock()}-{suffix}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-CSRF-Token": CSRF_TOKEN,
            "X-Request-ID": self._request_id(),
            "X-Session-ID": self.session_id(),
        }

    def _request(self, json_body: Dict[str, Any]) -> Any:
        retries_left = self._retries
        while True:
            try:
                resp = self._client.post(self._api_url, json=json_body, headers=self._headers())
            except httpx.TimeoutException as exc:
                raise OrderApiTimeoutError("Request timed out. Please try again.") from exc
            except httpx.TransportError as exc:
                if retries_left > 0:
                    logger.warning("Network error. Retrying... (%d left)", retries_left)
                    retries_left -= 1
                    self._sleep(self._retry_delay)
                    continue
                raise OrderApiError(f"Network error: {exc}") from exc

            if resp.is_success:
                try:
                    return resp.json()
                except ValueError as exc:
                    raise OrderApiError("Failed to parse JSON from order API") from exc

            if resp.status_code >= 500 and retries_left > 0:
                logger.warning("Server error %d. Retrying... (%d left)", resp.status_code, retries_left)
                retries_left -= 1
                self._sleep(self._retry_delay)
                continue

            raise OrderApiError(f"HTTP error {resp.status_code}: {resp.text[:200]}")


__all__ = [
    "OrderApiClient",
    "OrderApiError",
    "OrderApiTimeoutError",
    "SESSION_ID_KEY",
]
