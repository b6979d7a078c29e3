"""Client for the art generation worker.

The worker stores one image per user. ``generate`` always renders a new
one; ``fetch_existing`` returns the stored image if there is one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from mojomint.observability.logging import get_logger
from mojomint.services.base import ServiceClient

log = get_logger(__name__)

_PROMPT_TEMPLATE = (
    "Create an NFT image for \"Don't Kill The Jam - A Jam Killer Storied Collectors NFT\". "
    "The image should evoke a dystopian, rebellious musical world with neon highlights and "
    'gritty, futuristic details. It must reflect the following narrative: "{narrative}". '
    "The artwork should have a consistent, bold aesthetic that ties together the themes of "
    "artistic resistance and creative energy. Negative prompt: avoid bright cheerful colors, "
    "cartoonish styles, pastoral scenes, or anything that feels overly optimistic or "
    "disconnected from a dystopian vibe."
)


def build_image_prompt(narrative: str) -> str:
    """Art prompt for a finalized narrative."""
    return _PROMPT_TEMPLATE.format(narrative=narrative)


@dataclass(frozen=True)
class GeneratedImage:
    """Image reference returned by the worker.

    Attributes:
        image: Resolvable reference, typically ``data:image/png;base64,...``
            or an HTTPS/IPFS URL.
        user_id: Owner the worker stored the image under.
        message: Worker status message.
        raw: Full decoded response.
    """

    image: str
    user_id: str
    message: str = ""
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_data_uri(self) -> bool:
        return self.image.startswith("data:")


class ImageClient(ServiceClient):
    """Art generation worker client."""

    service_name = "image"

    def _to_image(self, data: dict[str, Any], user_id: str) -> GeneratedImage | None:
        image = data.get("image")
        if not isinstance(image, str) or not image:
            return None
        return GeneratedImage(
            image=image,
            user_id=str(data.get("userId") or user_id),
            message=str(data.get("message") or ""),
            raw=data,
        )

    async def fetch_existing(self, user_id: str) -> GeneratedImage | None:
        """Return the user's stored image, or None if there is none.

        A 404 means no image yet. The worker answers 500 while its storage
        is initializing, which is treated the same way.

        Raises:
            RemoteServiceError: On transport failure or any other non-2xx.
        """
        response = await self._send("GET", f"/image/{quote(user_id, safe='')}")
        if response.status_code in (404, 500):
            log.debug("image_not_found", user_id=user_id, status_code=response.status_code)
            return None
        self._raise_for_status(response)
        data = self._parse_json(response)
        if not isinstance(data, dict):
            return None
        return self._to_image(data, user_id)

    async def generate(self, prompt: str, user_id: str) -> GeneratedImage:
        """Render a new image for ``prompt``.

        Raises:
            RemoteServiceError: On failure, or when the response has no image.
        """
        log.debug("image_generate_start", user_id=user_id, prompt_preview=prompt[:100])
        data = await self._post_json("/generate", {"prompt": prompt, "userId": user_id})

        result = self._to_image(data, user_id)
        if result is None:
            detail = data.get("error") or "response has no 'image' field"
            raise self._error(f"Image generation failed: {detail}", raw_body=str(data))

        log.info("image_generated", user_id=user_id, data_uri=result.is_data_uri)
        return result
