"""Client for the narrative worker (update, finalize, reset).

Finalize responses come in several shapes depending on worker version:

    {"response": "In the ravaged streets of...", "usage": {...}}
    {"data": {"narrativeText": "..."}}
    {"text" | "content" | "message" | "narrative": "..."}
    plain text body

All of them are normalized to a plain string.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from mojomint.observability.logging import get_logger
from mojomint.services.base import ServiceClient

log = get_logger(__name__)

_TEXT_FIELDS = ("text", "content", "message", "narrative")
_PLAIN_TEXT_MIN_LENGTH = 10
_PLAIN_TEXT_MAX_LENGTH = 2000


def extract_narrative_text(data: Any) -> str | None:
    """Pull the narrative text out of a decoded finalize response.

    Returns:
        The narrative text, or None if no known field carries a string.
    """
    if not isinstance(data, dict):
        return None

    response = data.get("response")
    if isinstance(response, str):
        return response

    nested = data.get("data")
    if isinstance(nested, dict):
        text = nested.get("narrativeText")
        if isinstance(text, str) and text:
            return text

    for field_name in _TEXT_FIELDS:
        value = data.get(field_name)
        if isinstance(value, str) and value:
            return value

    return None


class NarrativeClient(ServiceClient):
    """Narrative worker client. Remote state is keyed by user id (wallet address)."""

    service_name = "narrative"

    def _path(self, action: str, user_id: str) -> str:
        return f"/narrative/{action}/{quote(user_id, safe='')}"

    async def update(self, user_id: str, answer: str) -> dict[str, Any]:
        """Append one answer to the user's remote narrative.

        Raises:
            RemoteServiceError: On transport failure, non-2xx or non-JSON body.
        """
        response = await self._send("POST", self._path("update", user_id), {"answer": answer})
        data = self._parse_json(response)
        if not response.is_success:
            detail = data.get("error") if isinstance(data, dict) else None
            raise self._error(
                detail or f"Failed to update narrative: HTTP {response.status_code}",
                status=response.status_code,
                raw_body=response.text,
            )
        log.debug("narrative_updated", user_id=user_id, answer_length=len(answer))
        return data if isinstance(data, dict) else {}

    async def finalize(self, user_id: str) -> str:
        """Ask the worker to compose the final narrative.

        Returns:
            The raw narrative text (not yet cleaned up).

        Raises:
            RemoteServiceError: If the call fails or no narrative text is found.
        """
        response = await self._send("POST", self._path("finalize", user_id))
        self._raise_for_status(response)

        body = response.text
        try:
            data = response.json()
        except ValueError:
            # Some worker builds answer with the bare narrative
            if len(body) > _PLAIN_TEXT_MIN_LENGTH:
                log.warning("narrative_plain_text_response", length=len(body))
                return body[:_PLAIN_TEXT_MAX_LENGTH]
            raise self._error(
                f"Invalid JSON response from finalize: {body}",
                status=response.status_code,
                raw_body=body,
            ) from None

        text = extract_narrative_text(data)
        if text is None:
            keys = sorted(data) if isinstance(data, dict) else None
            log.error("narrative_text_missing", keys=keys)
            raise self._error(
                "Could not extract narrative text from response",
                status=response.status_code,
                raw_body=body,
            )
        log.info("narrative_finalized", user_id=user_id, length=len(text))
        return text

    async def reset(self, user_id: str) -> None:
        """Clear the user's remote narrative state.

        Raises:
            RemoteServiceError: On transport failure or non-2xx.
        """
        response = await self._send("POST", self._path("reset", user_id), {})
        self._raise_for_status(response)
        log.debug("narrative_reset", user_id=user_id)
