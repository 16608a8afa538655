"""Minimal JSON-over-HTTP client used for every remote call."""

import logging
from typing import Any, Dict, Optional

import httpx

from .errors import RemoteCallError

logger = logging.getLogger("ave_crm_shopify.http")


class HttpClient:
    """
    Issue one HTTP request and return the decoded JSON body.

    Each call is attempted exactly once. Network failures and HTTP error
    statuses raise RemoteCallError; an empty or non-JSON body decodes to None.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        """
        Initialize the client.

        Args:
            client: Optional httpx client (e.g. one built on httpx.MockTransport)
            timeout: Request timeout in seconds when the client is created here
        """
        if client is not None:
            self.client = client
            self._owns_client = False
        else:
            self.client = httpx.AsyncClient(timeout=timeout)
            self._owns_client = True

    async def close(self):
        """Close HTTP client."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        data: Any = None,
        params: Any = None,
    ) -> Any:
        """
        Perform a request.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE...)
            url: Absolute URL
            headers: Extra request headers
            data: JSON-serializable body, sent only when not empty
            params: Query string parameters

        Returns:
            Decoded JSON, or None when the response carries no JSON
        """
        method = method.upper()
        request_headers = {"Content-Type": "application/json"}
        if headers:
            request_headers.update(headers)

        kwargs: Dict[str, Any] = {"headers": request_headers}
        if data:
            kwargs["json"] = data
        if params:
            kwargs["params"] = params

        try:
            response = await self.client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "remote_call_status_error",
                extra={"method": method, "url": url, "status_code": e.response.status_code},
            )
            raise RemoteCallError(method, url, e.response.text or str(e), e.response.status_code) from e
        except httpx.RequestError as e:
            logger.warning("remote_call_failed", extra={"method": method, "url": url})
            raise RemoteCallError(method, url, str(e) or type(e).__name__) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None
