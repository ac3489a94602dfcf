"""
Base HTTP client shared by the brokerage and earnings data clients.

Provides:
- requests.Session management with default headers
- Exponential backoff retry for transient failures (5xx, timeouts, network)
- A separate, configurable retry policy for HTTP 429 responses
- Hook for subclass-specific error mapping

Subclasses build absolute URLs themselves (a client may talk to several
hosts) and call `request()`.
"""

import logging
import time
from typing import Any, Dict, Optional

import requests

from earnings_spread.config import RetryPolicy

logger = logging.getLogger(__name__)


class BaseAPIClient:
    """
    Session, timeout and retry handling shared by the HTTP clients.

    A subclass sets its auth headers on `self.session`, maps non-2xx
    responses to its own exceptions in `_handle_error_response()`, and
    builds its endpoint methods on `request()`.
    """

    def __init__(
        self,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: int = 30,
        rate_limit_policy: Optional[RetryPolicy] = None,
    ):
        """
        Args:
            max_retries: Maximum retry attempts for transient errors
            retry_delay: Base delay in seconds between retries (exponential backoff)
            timeout: Request timeout in seconds
            rate_limit_policy: Retry policy applied to HTTP 429 responses
        """
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.rate_limit_policy = rate_limit_policy or RetryPolicy()
        self.session = requests.Session()

        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": f"{self.__class__.__name__}/1.0"
        })

        logger.info(f"{self.__class__.__name__} initialized")

    def request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        """
        Make an HTTP request, retrying per the configured policies.

        Args:
            method: HTTP method (GET, POST, DELETE, ...)
            url: Absolute request URL
            params: Query parameters
            json_data: JSON request body

        Returns:
            Successful HTTP response

        Raises:
            Whatever `_handle_error_response` raises for non-2xx responses,
            or requests.exceptions.RequestException once retries are exhausted
        """
        response = self._send_with_retry(method, url, params, json_data)

        rate_limit_retry = 0
        while (
            response.status_code == 429
            and rate_limit_retry + 1 < self.rate_limit_policy.max_attempts
        ):
            delay = self.rate_limit_policy.delay_for(rate_limit_retry)
            rate_limit_retry += 1
            logger.warning(
                f"Rate limited (429) on {method} {url}. Retrying in {delay}s "
                f"(attempt {rate_limit_retry + 1}/{self.rate_limit_policy.max_attempts})"
            )
            time.sleep(delay)
            response = self._send_with_retry(method, url, params, json_data)

        if not response.ok:
            self._handle_error_response(response)

        logger.debug(f"Response: {response.status_code}")
        return response

    def _send_with_retry(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]],
        json_data: Optional[Dict[str, Any]],
        retry_count: int = 0,
    ) -> requests.Response:
        """
        Send one request with exponential backoff on transient failures.

        Handles server errors (5xx), timeouts and connection errors. Any
        other response, including 4xx, is returned to the caller as-is.
        """
        logger.debug(f"{method} {url}")
        if params:
            logger.debug(f"  Params: {params}")

        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json_data,
                timeout=self.timeout,
            )
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            if retry_count < self.max_retries:
                delay = self._calculate_backoff_delay(retry_count)
                logger.warning(
                    f"Network error: {e}. Retrying in {delay}s "
                    f"(attempt {retry_count + 1}/{self.max_retries})"
                )
                time.sleep(delay)
                return self._send_with_retry(method, url, params, json_data, retry_count + 1)
            logger.error(f"Network error after {self.max_retries} retries: {e}")
            raise

        if response.status_code >= 500 and retry_count < self.max_retries:
            delay = self._calculate_backoff_delay(retry_count)
            logger.warning(
                f"Server error ({response.status_code}). "
                f"Retrying in {delay}s (attempt {retry_count + 1}/{self.max_retries})"
            )
            time.sleep(delay)
            return self._send_with_retry(method, url, params, json_data, retry_count + 1)

        return response

    def _calculate_backoff_delay(self, retry_count: int) -> float:
        """Exponential backoff delay for a 0-indexed retry attempt."""
        return self.retry_delay * (2 ** retry_count)

    def _handle_error_response(self, response: requests.Response) -> None:
        """
        Map a non-2xx response (after retries) to an exception.

        The default raises requests' HTTPError.
        """
        response.raise_for_status()

    def close(self) -> None:
        """Close the underlying session."""
        self.session.close()
        logger.info(f"{self.__class__.__name__} closed")

    def __enter__(self) -> "BaseAPIClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
