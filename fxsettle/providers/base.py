from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: Optional[float] = None

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is configured to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass


class HttpProvider(Provider):
    """Provider backed by a JSON HTTP API.

    `transport` is passed straight to `httpx.AsyncClient`; tests supply an
    `httpx.MockTransport`. A `None` timeout keeps the httpx default.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        if timeout_s is not None:
            self.timeout_s = timeout_s
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "accept": "application/json",
            "content-type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        kwargs: Dict[str, Any] = {"base_url": self.base_url}
        if self.timeout_s is not None:
            kwargs["timeout"] = self.timeout_s
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Send a request and raise `httpx.HTTPStatusError` on 4xx/5xx.

        `httpx.RequestError` (connect failures, timeouts) propagates untouched
        so callers can classify it.
        """
        merged_headers = {**self._headers(), **(headers or {})}
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        async with self._client() as client:
            response = await client.request(
                method,
                path.lstrip("/"),
                json=json,
                params=params or None,
                headers=merged_headers,
            )
            response.raise_for_status()
            return response


def response_detail(response: httpx.Response) -> Any:
    """JSON body of an error response, or its text when it is not JSON."""
    try:
        return response.json()
    except ValueError:
        return response.text
