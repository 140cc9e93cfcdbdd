from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from hospitality_pricer.config.settings import settings
from hospitality_pricer.models.match import RawMatch
from hospitality_pricer.models.portal import Portal

# Define common HTTP status codes that warrant a retry
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class PortalError(Exception):
    """Custom exception for portal client errors."""

    pass


class AuthenticationError(PortalError):
    """Exception raised for authentication failures (401, 403)."""

    pass


class RateLimitError(PortalError):
    """Exception raised for rate limit errors (429)."""

    pass


class RetryableStatusError(PortalError):
    """A transient HTTP status the request is retried on."""

    pass


class PortalClient(ABC):
    """Narrow interface the pipeline uses to read a sales portal."""

    @abstractmethod
    async def list_matches(self, portal: Portal) -> List[Dict[str, Any]]:
        """Fetch the raw match listing of a portal.

        Returns:
            The listing as decoded JSON; normally a list of match objects.
        """
        pass

    @abstractmethod
    async def list_offers(self, portal: Portal, match: RawMatch) -> List[Dict[str, Any]]:
        """Fetch the raw price listing of one match on a portal.

        Raises:
            PortalError: if the price detail could not be retrieved.
        """
        pass

    async def close(self) -> None:
        pass


class HttpPortalClient(PortalClient):
    """Base class for portal clients talking JSON over HTTP."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.client = client or httpx.AsyncClient(
            base_url=str(settings.portal_base_url),
            timeout=httpx.Timeout(settings.request_timeout_seconds),
            follow_redirects=True,
            headers={
                "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
                "Accept-Language": "en-US,en;q=0.9",
                "Accept": "application/json, text/plain, */*",
            },
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(
            (httpx.TransportError, RetryableStatusError, RateLimitError)
        ),
        reraise=True,  # Reraise the last exception after max attempts
    )
    async def _request_json(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Makes an HTTP request with retry logic and returns the decoded JSON body."""
        logger.debug(f"Making request {method} {url}", params=params)
        response = await self.client.request(method, url, headers=headers, params=params)

        if response.status_code in {401, 403}:
            logger.warning(
                f"Authentication error ({response.status_code}) at {url}. The portal refused the session."
            )
            # Don't retry auth errors
            raise AuthenticationError(f"Authentication failed ({response.status_code}) at {url}")

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            logger.warning(f"Rate limit hit (429) at {url}. Retry-After: {retry_after}")
            raise RateLimitError(f"Rate limited at {url}")

        if response.status_code in RETRYABLE_STATUS_CODES:
            logger.warning(f"Retrying request to {url} due to status {response.status_code}")
            raise RetryableStatusError(f"HTTP {response.status_code} at {url}")

        if response.is_error:
            logger.error(f"HTTP error {response.status_code} at {url}")
            raise PortalError(f"HTTP error {response.status_code} at {url}")

        try:
            return response.json()
        except ValueError as e:
            raise PortalError(f"Response from {url} is not valid JSON") from e

    async def _make_request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Runs the retried request and maps leftover transport errors to PortalError."""
        try:
            return await self._request_json(method, url, headers=headers, params=params)
        except PortalError:
            raise
        except httpx.HTTPError as e:
            logger.error(f"Request to {url} failed after retries: {e}")
            raise PortalError(f"Request to {url} failed: {e}") from e

    async def close(self):
        """Closes the underlying HTTP client."""
        await self.client.aclose()
        logger.info("Closed portal HTTP client")
