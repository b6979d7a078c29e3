"""Client for the IPFS metadata pinning worker."""

from __future__ import annotations

import re
from typing import Any

from mojomint.observability.logging import get_logger
from mojomint.services.base import ServiceClient

log = get_logger(__name__)

# Older worker builds report the URI under one of these names
_ALTERNATIVE_URI_FIELDS = ("url", "ipfsUri", "metadataUri", "ipfs", "hash", "cid")
_BARE_CID = re.compile(r"^[a-zA-Z0-9]{46}$")


def extract_uri(data: Any) -> str | None:
    """Find the pinned URI in a decoded upload response."""
    if not isinstance(data, dict):
        return None

    uri = data.get("uri")
    if isinstance(uri, str) and uri:
        return uri

    for field_name in _ALTERNATIVE_URI_FIELDS:
        value = data.get(field_name)
        if isinstance(value, str) and value:
            log.debug("metadata_uri_alternative_field", field=field_name)
            return value

    nested = data.get("data")
    if isinstance(nested, dict):
        value = nested.get("uri")
        if isinstance(value, str) and value:
            return value

    return None


class MetadataPinClient(ServiceClient):
    """Pins NFT metadata JSON and returns its content-addressed URI."""

    service_name = "metadata"

    async def pin(self, metadata: dict[str, Any], user_id: str, timestamp: int) -> str:
        """Pin ``metadata`` for ``user_id``.

        Args:
            metadata: JSON-serializable metadata object.
            user_id: Owner identifier (wallet address).
            timestamp: Milliseconds since the epoch, stored alongside the pin.

        Returns:
            The pinned URI (usually ``ipfs://<cid>``).

        Raises:
            RemoteServiceError: On transport failure, non-2xx, an explicit
                ``success: false`` payload, or a response without a URI.
        """
        payload = {"metadata": metadata, "userId": user_id, "timestamp": timestamp}
        response = await self._send("POST", "/upload", payload)
        self._raise_for_status(response)

        body = response.text
        try:
            data = response.json()
        except ValueError:
            candidate = body.strip()
            if candidate.startswith("ipfs://") or _BARE_CID.match(candidate):
                log.info("metadata_pinned_plain_text", uri=candidate)
                return candidate
            raise self._error(
                f"Invalid JSON response from metadata upload: {body[:200]}",
                status=response.status_code,
                raw_body=body,
            ) from None

        if isinstance(data, dict) and data.get("success") is False:
            raise self._error(
                str(data.get("error") or "Upload reported failure"),
                status=response.status_code,
                raw_body=body,
            )

        uri = extract_uri(data)
        if uri is None:
            raise self._error(
                "No URI found in upload response", status=response.status_code, raw_body=body
            )

        log.info("metadata_pinned", user_id=user_id, uri=uri)
        return uri
