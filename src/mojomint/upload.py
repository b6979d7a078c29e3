"""Publish metadata to content-addressed storage, with a local fallback URI.

Publishing never fails outright: when the pinning worker is down or answers
with garbage, the coordinator returns a syntactically valid placeholder URI
and says so through ``UploadResult.fallback_used`` and ``warning``. Whether
a placeholder is acceptable for a mint is decided by the caller.
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from mojomint.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from mojomint.metadata.models import NFTMetadata
    from mojomint.services.metadata import MetadataPinClient

log = get_logger(__name__)

FALLBACK_PREFIX = "ipfs://QmFallback"
_BASE36 = string.digits + string.ascii_lowercase
_RAND_LEN = 8
_UID_LEN = 6


@dataclass(frozen=True)
class UploadResult:
    """Outcome of a publish.

    Attributes:
        success: True when the pinning worker returned a URI.
        uri: URI to mint with. Never empty.
        warning: Why the fallback was used; None on success.
    """

    success: bool
    uri: str
    warning: str | None = None

    def __post_init__(self) -> None:
        if not self.uri:
            raise ValueError("UploadResult.uri must not be empty")

    @property
    def fallback_used(self) -> bool:
        return not self.success


def _user_fragment(user_id: str) -> str:
    uid = user_id.lower()
    if uid.startswith("0x"):
        uid = uid[2:]
    return uid[:_UID_LEN]


class UploadCoordinator:
    """Pins metadata once and falls back to a generated URI on any failure.

    Args:
        pin_client: Metadata pinning worker client.
        rng: Random source for the fallback suffix.
        clock: Returns the current time in seconds (``time.time`` by default).
    """

    def __init__(
        self,
        pin_client: MetadataPinClient,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._pin_client = pin_client
        self._rng = rng or random.Random()
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def make_fallback_uri(self, user_id: str, timestamp_ms: int | None = None) -> str:
        """Build ``ipfs://QmFallback{timestamp_ms}{rand8}{uid6}``.

        ``rand8`` is eight lowercase base-36 characters; ``uid6`` is the first
        six characters of the lowercased user id without its ``0x`` prefix.
        """
        ts = self._now_ms() if timestamp_ms is None else timestamp_ms
        suffix = "".join(self._rng.choice(_BASE36) for _ in range(_RAND_LEN))
        return f"{FALLBACK_PREFIX}{ts}{suffix}{_user_fragment(user_id)}"

    async def publish(self, metadata: NFTMetadata, user_id: str) -> UploadResult:
        """Pin ``metadata`` for ``user_id``.

        Returns:
            A successful result with the pinned URI, or a fallback result
            carrying a warning. This method does not raise for service
            failures.
        """
        timestamp = self._now_ms()
        try:
            uri = await self._pin_client.pin(metadata.to_json_dict(), user_id, timestamp)
        except Exception as e:
            fallback = self.make_fallback_uri(user_id, timestamp)
            log.warning(
                "metadata_upload_fallback",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
                fallback_uri=fallback,
            )
            return UploadResult(
                success=False,
                uri=fallback,
                warning=f"Metadata upload failed, using fallback URI: {e}",
            )

        log.debug("metadata_published", user_id=user_id, uri=uri)
        return UploadResult(success=True, uri=uri)
