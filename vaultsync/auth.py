"""Access token acquisition for the remote object store.

Access tokens are obtained by posting the long-lived refresh token to a
token exchange endpoint. This is the only network call that is retried:
initial acquisition at startup backs off exponentially for a bounded
number of attempts, everything else fails fast.
"""

import logging
import random
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import httpx

from .exceptions import TokenError
from .utils import (
    DEFAULT_TOKEN_MAX_RETRIES,
    DEFAULT_TOKEN_RETRY_DELAY,
    parse_iso_timestamp,
    utc_now,
)

logger = logging.getLogger(__name__)

# Refresh slightly before the reported expiry
EXPIRY_MARGIN = timedelta(seconds=60)


@dataclass
class AccessToken:
    """An access token and its expiry."""

    value: str
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Whether the token is expired (or about to expire)."""
        if self.expires_at is None:
            return False
        now = now or utc_now()
        return now >= self.expires_at - EXPIRY_MARGIN

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "AccessToken":
        """Create an AccessToken from the token endpoint response.

        The endpoint returns ``access_token`` and ``expiry_date``, the latter
        either as an ISO string or as epoch milliseconds.
        """
        value = data.get("access_token")
        if not value:
            raise TokenError("Token response did not contain an access_token")

        expiry = data.get("expiry_date")
        expires_at: Optional[datetime] = None
        if isinstance(expiry, (int, float)):
            expires_at = datetime.fromtimestamp(expiry / 1000, tz=timezone.utc)
        elif isinstance(expiry, str):
            expires_at = parse_iso_timestamp(expiry)
        return cls(value=value, expires_at=expires_at)


class TokenManager:
    """Acquires and caches access tokens from a refresh token."""

    def __init__(
        self,
        refresh_token: Optional[str],
        refresh_url: Optional[str],
        max_retries: int = DEFAULT_TOKEN_MAX_RETRIES,
        retry_delay: float = DEFAULT_TOKEN_RETRY_DELAY,
        timeout: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the token manager.

        Args:
            refresh_token: Long-lived refresh token
            refresh_url: URL of the token exchange endpoint
            max_retries: Maximum number of retries for initial acquisition
            retry_delay: Initial delay between retries in seconds
            timeout: Request timeout in seconds
            sleep: Sleep function (injectable for tests)
        """
        if not refresh_token:
            raise TokenError(
                "No refresh token configured. "
                "Set VAULTSYNC_REFRESH_TOKEN or run 'vaultsync init'."
            )
        if not refresh_url:
            raise TokenError(
                "No token endpoint configured. Set VAULTSYNC_REFRESH_URL."
            )
        self.refresh_token = refresh_token
        self.refresh_url = refresh_url
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._sleep = sleep
        self._token: Optional[AccessToken] = None
        self._lock = threading.Lock()

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _fetch(self) -> AccessToken:
        try:
            response = httpx.post(
                self.refresh_url,
                json={"refreshToken": self.refresh_token},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise TokenError(
                f"Token endpoint returned status {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise TokenError(f"Network error while fetching token: {e}") from e
        except ValueError as e:
            raise TokenError("Token endpoint returned invalid JSON") from e

        if not isinstance(data, dict):
            raise TokenError("Token endpoint returned an unexpected response")
        return AccessToken.from_response(data)

    def acquire(self) -> AccessToken:
        """Acquire a fresh access token, retrying with exponential backoff.

        Returns:
            The new access token

        Raises:
            TokenError: If every attempt failed
        """
        last_error: Optional[TokenError] = None
        for attempt in range(self.max_retries + 1):
            try:
                self._token = self._fetch()
                logger.debug(f"Acquired access token (attempt {attempt + 1})")
                return self._token
            except TokenError as e:
                last_error = e
                if attempt < self.max_retries:
                    delay = self._calculate_retry_delay(attempt)
                    logger.warning(
                        f"Could not fetch access token "
                        f"(attempt {attempt + 1}/{self.max_retries + 1}), "
                        f"retrying in {delay:.1f}s: {e}"
                    )
                    self._sleep(delay)

        assert last_error is not None
        raise TokenError(
            f"Could not fetch access token after {self.max_retries + 1} attempts"
        ) from last_error

    def get_token(self) -> str:
        """Return a valid access token, refreshing it when expired.

        Refreshes after the initial acquisition fail fast.
        """
        with self._lock:
            if self._token is None:
                return self.acquire().value
            if self._token.is_expired():
                logger.debug("Access token expired, refreshing")
                self._token = self._fetch()
            return self._token.value
