"""Plain HTTP remote object store.

Objects are addressed as ``{base_url}/{key}`` and accessed with GET, PUT and
DELETE, which covers WebDAV servers, simple blob gateways and presigned S3
compatible endpoints.
"""

import logging
import time
from typing import Any, Optional

import httpx

from ..exceptions import ConnectivityError, JournalSyncError, TransferError
from ..utils import (
    DEFAULT_HTTP_MAX_RETRIES,
    DEFAULT_HTTP_TIMEOUT,
    calculate_retry_delay,
)

logger = logging.getLogger(__name__)


class _RetryableError(TransferError):
    """Transient failure (429, 5xx) that may succeed on retry."""


class HttpObjectStore:
    """Remote object store speaking plain HTTP."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        max_retries: int = DEFAULT_HTTP_MAX_RETRIES,
        retry_delay: float = 1.0,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize the HTTP object store.

        Args:
            base_url: Base URL objects are stored under
            token: Optional bearer token
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            headers = {}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.Client(
                headers=headers,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def _url(self, key: str) -> str:
        return f"{self.base_url}/{key.lstrip('/')}"

    def _check_response(self, response: httpx.Response, method: str, key: str) -> None:
        """Raise the matching error for a failed response.

        Raises:
            ConnectivityError: On 401/403
            _RetryableError: On 429 and 5xx
            TransferError: On any other error status
        """
        status_code = response.status_code
        if status_code < 400:
            return
        if status_code in (401, 403):
            raise ConnectivityError(
                f"Remote store rejected {method} {key} ({status_code}) - "
                "check your credentials"
            )
        message = f"{method} {key} failed with status {status_code}"
        if status_code == 429 or 500 <= status_code < 600:
            raise _RetryableError(message)
        raise TransferError(message)

    def _request(
        self,
        method: str,
        key: str,
        allow_not_found: bool = False,
        **kwargs: Any,
    ) -> Optional[httpx.Response]:
        """Make a request with retry logic.

        Args:
            method: HTTP method
            key: Object key (or "" for the base URL)
            allow_not_found: Return None instead of raising on 404
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response, or None on 404 when allow_not_found is set

        Raises:
            ConnectivityError: If the store is unreachable or rejects credentials
            TransferError: If the request fails after all retries
        """
        client = self._get_client()
        url = self._url(key) if key else self.base_url
        last_exception: Optional[JournalSyncError] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = client.request(method, url, **kwargs)
                if allow_not_found and response.status_code == 404:
                    return None
                self._check_response(response, method, key)
                return response
            except _RetryableError as e:
                last_exception = e
            except httpx.RequestError as e:
                last_exception = ConnectivityError(f"Network error: {e}")
                last_exception.__cause__ = e

            if attempt < self.max_retries:
                delay = calculate_retry_delay(self.retry_delay, attempt)
                logger.debug(
                    f"{method} {key} failed (attempt {attempt + 1}), "
                    f"retrying in {delay:.1f}s: {last_exception}"
                )
                time.sleep(delay)

        if isinstance(last_exception, _RetryableError):
            raise TransferError(str(last_exception)) from last_exception
        if last_exception:
            raise last_exception
        raise TransferError(f"{method} {key} failed after all retry attempts")

    def get(self, key: str) -> Optional[bytes]:
        response = self._request("GET", key, allow_not_found=True)
        if response is None:
            logger.debug(f"Object {key} does not exist")
            return None
        return response.content

    def put(self, key: str, data: bytes) -> None:
        logger.debug(f"Putting {len(data)} bytes to {self._url(key)}")
        self._request(
            "PUT",
            key,
            content=data,
            headers={"Content-Type": "application/json"},
        )

    def delete(self, key: str) -> None:
        # Deleting a missing object is not an error
        self._request("DELETE", key, allow_not_found=True)

    def list_probe(self, max_keys: int = 1) -> None:
        """Verify the store is reachable and accepts the credentials.

        Raises:
            ConnectivityError: If the probe fails
        """
        try:
            self._request("GET", "", params={"max-keys": max_keys})
        except TransferError as e:
            raise ConnectivityError(f"Remote store probe failed: {e}") from e
