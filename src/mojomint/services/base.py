"""Shared HTTP plumbing for the remote worker clients.

Every client makes exactly one request per call. There is no retry here:
callers decide what a failure means.
"""

from __future__ import annotations

import json
from typing import Any, Self

import httpx

from mojomint.errors import MojoMintError
from mojomint.observability.logging import get_logger

log = get_logger(__name__)

_DEFAULT_TIMEOUT = 60.0
_BODY_PREVIEW = 200


class RemoteServiceError(MojoMintError):
    """A remote worker call failed.

    Attributes:
        service: Short service name (``narrative``, ``metadata``...).
        status: HTTP status code, or None when no response was received.
        raw_body: Response body text (may be empty).
    """

    def __init__(
        self,
        service: str,
        message: str,
        *,
        status: int | None = None,
        raw_body: str = "",
    ) -> None:
        self.service = service
        self.status = status
        self.raw_body = raw_body
        super().__init__(f"[{service}] {message}")


class RemoteServiceConnectionError(RemoteServiceError):
    """Raised when the worker is unreachable or the request timed out."""


class ServiceClient:
    """Base class for single-request JSON clients.

    Args:
        base_url: Worker base URL (trailing slash is stripped).
        timeout: Request timeout in seconds.
        client: Optional pre-built ``httpx.AsyncClient`` (shared pools, tests).
    """

    service_name = "service"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _error(
        self, message: str, *, status: int | None = None, raw_body: str = ""
    ) -> RemoteServiceError:
        return RemoteServiceError(self.service_name, message, status=status, raw_body=raw_body)

    async def _send(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one request and return the raw response.

        Raises:
            RemoteServiceConnectionError: On connect errors and timeouts.
        """
        url = f"{self._base_url}{path}"
        log.debug("remote_request", service=self.service_name, method=method, url=url)

        try:
            if method == "GET":
                response = await self._client.get(url)
            else:
                response = await self._client.post(url, json=payload)
        except httpx.TimeoutException as e:
            log.error("remote_timeout", service=self.service_name, url=url, timeout=self._timeout)
            raise RemoteServiceConnectionError(
                self.service_name, f"Request to {url} timed out after {self._timeout}s: {e}"
            ) from e
        except httpx.HTTPError as e:
            log.error("remote_connect_error", service=self.service_name, url=url, error=str(e))
            raise RemoteServiceConnectionError(
                self.service_name, f"Cannot reach {url}: {e}"
            ) from e

        log.debug("remote_response", service=self.service_name, status_code=response.status_code)
        return response

    def _raise_for_status(self, response: httpx.Response) -> None:
        """Raise RemoteServiceError for any non-2xx response."""
        if response.is_success:
            return
        body = response.text
        log.error(
            "remote_http_error",
            service=self.service_name,
            status_code=response.status_code,
            body_preview=body[:_BODY_PREVIEW],
        )
        raise self._error(
            f"HTTP {response.status_code}: {body[:_BODY_PREVIEW]}",
            status=response.status_code,
            raw_body=body,
        )

    def _parse_json(self, response: httpx.Response) -> Any:
        """Decode a JSON body, raising RemoteServiceError if it is not JSON."""
        try:
            return response.json()
        except json.JSONDecodeError as e:
            body = response.text
            raise self._error(
                f"Invalid JSON response: {body[:_BODY_PREVIEW]}",
                status=response.status_code,
                raw_body=body,
            ) from e

    async def _post_json(self, path: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        """POST ``payload`` and return the decoded JSON object of a 2xx response."""
        response = await self._send("POST", path, payload)
        self._raise_for_status(response)
        data = self._parse_json(response)
        if not isinstance(data, dict):
            raise self._error(
                f"Expected a JSON object, got {type(data).__name__}",
                status=response.status_code,
                raw_body=response.text,
            )
        return data
