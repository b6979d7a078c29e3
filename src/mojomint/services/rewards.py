"""Client for the mojo token reward worker."""

from __future__ import annotations

import time

from mojomint.observability.logging import get_logger
from mojomint.services.base import ServiceClient

log = get_logger(__name__)


class RewardClient(ServiceClient):
    """Awards mojo tokens after a successful mint."""

    service_name = "rewards"

    async def award(self, address: str, mojo_score: int, narrative_path: str) -> str:
        """Request a token award.

        Returns:
            Hash of the reward transaction sent by the worker.

        Raises:
            RemoteServiceError: On failure or when ``txHash`` is missing.
        """
        payload = {
            "address": address,
            "mojoScore": mojo_score,
            "narrativePath": narrative_path,
            "timestamp": int(time.time() * 1000),
        }
        data = await self._post_json("/mint", payload)
        tx_hash = data.get("txHash")
        if not isinstance(tx_hash, str) or not tx_hash:
            raise self._error("Reward response has no 'txHash'", raw_body=str(data))
        log.info("mojo_tokens_awarded", address=address, mojo_score=mojo_score, tx_hash=tx_hash)
        return tx_hash
