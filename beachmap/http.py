"""HTTP client for the access-locations feed with retry/backoff."""
from __future__ import annotations

import logging
import random
import time
from typing import Any, List, Optional

import requests

from . import config

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


class FetchError(RuntimeError):
    pass


class HttpClient:
    def __init__(
        self,
        timeout: Optional[float] = None,
        retry_max: Optional[int] = None,
        backoff_base_ms: Optional[int] = None,
        backoff_max_ms: Optional[int] = None,
        jitter: bool = False,
    ) -> None:
        if timeout is None:
            timeout = config.HTTP_TIMEOUT_SECONDS
        if retry_max is None:
            retry_max = config.HTTP_RETRY_MAX
        if backoff_base_ms is None:
            backoff_base_ms = config.HTTP_BACKOFF_BASE_MS
        if backoff_max_ms is None:
            backoff_max_ms = config.HTTP_BACKOFF_MAX_MS
        if retry_max < 1:
            raise ValueError("retry_max must be >= 1")
        self.timeout = timeout
        self.retry_max = retry_max
        self.backoff_base_ms = backoff_base_ms
        self.backoff_max_ms = backoff_max_ms
        self.jitter = jitter
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def get_json(self, url: str) -> Any:
        """Single GET, no retry. Raises FetchError on any transport or HTTP failure."""
        try:
            resp = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise FetchError(f"API request failed: {exc}") from exc

        status = resp.status_code
        if status != 200:
            raise FetchError(f"API request failed: HTTP {status} from {url}")
        try:
            return resp.json()
        except ValueError as exc:
            logger.error("Non-JSON response from %s", url)
            raise FetchError(f"Non-JSON response from {url}") from exc

    def get_json_with_retry(self, url: str) -> Any:
        last_error: Optional[Exception] = None
        for attempt in range(1, self.retry_max + 1):
            try:
                resp = self.session.get(url, timeout=self.timeout)
            except requests.RequestException as exc:
                last_error = exc
                logger.warning("Request to %s failed (attempt %s): %s", url, attempt, exc)
                if attempt < self.retry_max:
                    self._sleep_backoff(attempt)
                continue

            status = resp.status_code
            if status == 200:
                try:
                    return resp.json()
                except ValueError as exc:
                    logger.error("Non-JSON response from %s", url)
                    raise FetchError(f"Non-JSON response from {url}") from exc

            if status in RETRYABLE_STATUSES:
                last_error = FetchError(f"HTTP {status} from {url}")
                logger.warning("HTTP %s from %s (attempt %s)", status, url, attempt)
                if attempt < self.retry_max:
                    if not self._sleep_retry_after(resp):
                        self._sleep_backoff(attempt)
                continue

            # Non-retryable
            logger.error("HTTP %s from %s", status, url)
            raise FetchError(f"API request failed: HTTP {status} from {url}")

        raise FetchError(
            f"Giving up on {url} after {self.retry_max} attempts: {last_error}"
        ) from last_error

    def backoff_delay_ms(self, attempt: int) -> float:
        return min(self.backoff_base_ms * (2 ** (attempt - 1)), self.backoff_max_ms)

    def _sleep_backoff(self, attempt: int) -> None:
        delay_ms = self.backoff_delay_ms(attempt)
        if self.jitter:
            delay_ms += random.uniform(0, self.backoff_base_ms)
        logger.info("Retrying in %sms...", int(delay_ms))
        time.sleep(delay_ms / 1000.0)

    def _sleep_retry_after(self, resp: requests.Response) -> bool:
        retry_after = resp.headers.get("Retry-After")
        if not retry_after:
            return False
        try:
            delay = float(retry_after)
        except ValueError:
            return False
        delay = max(0.0, min(delay, self.backoff_max_ms / 1000.0))
        time.sleep(delay)
        return True


def _as_record_list(payload: Any, url: str) -> List[Any]:
    if not isinstance(payload, list):
        raise FetchError(f"Expected a JSON array from {url}, got {type(payload).__name__}")
    return payload


def fetch(url: str, timeout: Optional[float] = None) -> List[Any]:
    return _as_record_list(HttpClient(timeout=timeout, retry_max=1).get_json(url), url)


def fetch_with_retry(
    url: str,
    max_attempts: Optional[int] = None,
    base_delay_ms: Optional[int] = None,
    max_delay_ms: Optional[int] = None,
    timeout: Optional[float] = None,
    client: Optional[HttpClient] = None,
) -> List[Any]:
    if client is None:
        client = HttpClient(
            timeout=timeout,
            retry_max=max_attempts,
            backoff_base_ms=base_delay_ms,
            backoff_max_ms=max_delay_ms,
        )
    return _as_record_list(client.get_json_with_retry(url), url)
