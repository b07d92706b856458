"""
HTTP client for the Google Apps Script (GAS) web app deployment.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import requests

from agency.errors import GasApiError
from agency.resilience import CircuitBreaker, retrying

logger = logging.getLogger(__name__)

USER_AGENT = "LuxeryPrime-Agency/1.0"


def _should_retry(error: BaseException) -> bool:
    if isinstance(error, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(error, GasApiError):
        return error.status is not None and error.retryable
    return False


class GasClient:
    """
    Calls `<base_url>?action=<name>` on the GAS deployment.

    Extra query parameters are forwarded unchanged. Every attempt goes through
    the circuit breaker; transport errors, 429 and 5xx answers are retried
    with exponential backoff.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        retry_max_delay: float = 10.0,
        retry_jitter: float = 1.0,
        breaker: CircuitBreaker | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.retry_max_delay = retry_max_delay
        self.retry_jitter = retry_jitter
        self.breaker = breaker or CircuitBreaker()
        self.session = session or requests.Session()
        self.session.headers.update(
            {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        )

    def get(self, action: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return self._request("GET", action, params=params)

    def post(
        self,
        action: str,
        body: Any = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        return self._request("POST", action, params=params, body=body)

    def _request(
        self,
        method: str,
        action: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
    ) -> Any:
        query = {"action": action}
        for key, value in (params or {}).items():
            if key != "action":
                query[key] = value

        policy = retrying(
            max_attempts=self.max_retries,
            base_delay=self.retry_delay,
            max_delay=self.retry_max_delay,
            jitter=self.retry_jitter,
            should_retry=_should_retry,
        )
        return policy(self.breaker.call, lambda: self._send(method, query, body))

    def _send(self, method: str, query: dict, body: Any) -> Any:
        logger.debug("GAS %s action=%s", method, query["action"])
        response = self.session.request(
            method,
            self.base_url,
            params=query,
            json=body if method == "POST" else None,
            timeout=self.timeout,
        )
        if not response.ok:
            raise GasApiError(
                f"HTTP error! status: {response.status_code}",
                status=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise GasApiError(f"GAS returned an invalid JSON body: {e}") from e
