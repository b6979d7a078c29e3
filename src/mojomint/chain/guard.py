"""Network guard: keeps value-bearing calls on the required chain."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from mojomint.observability.logging import get_logger

if TYPE_CHECKING:
    from mojomint.chain.wallet import WalletProvider

log = get_logger(__name__)


@dataclass(frozen=True)
class ChainCheck:
    """Outcome of comparing the wallet's chain with the required one.

    Attributes:
        ok: True when the wallet is on the required chain.
        current: Observed chain id, or None if it could not be read.
        required: Chain id the workflow needs.
    """

    ok: bool
    current: int | None
    required: int

    @property
    def message(self) -> str:
        if self.ok:
            return ""
        if self.current is None:
            return "Can't verify network"
        return f"Wrong network: connected to chain {self.current}, switch to chain {self.required}"


class NetworkGuard:
    """Reads and switches the wallet's active chain.

    The guard only remembers the last chain id it observed. It never polls;
    callers refresh it when something changes (wallet connect, mint confirm).

    Args:
        wallet: Connected wallet.
        required_chain_id: Chain the mint contract lives on.
    """

    def __init__(self, wallet: WalletProvider, required_chain_id: int) -> None:
        self._wallet = wallet
        self.required_chain_id = required_chain_id
        self.last_observed: int | None = None

    async def current_chain(self) -> int | None:
        """Read the wallet's chain id.

        Returns:
            The chain id, or None if the wallet could not report it.
        """
        try:
            chain_id = await self._wallet.get_chain_id()
        except Exception as e:
            log.warning("chain_id_read_failed", error=str(e))
            self.last_observed = None
            return None

        self.last_observed = chain_id
        log.debug("chain_observed", chain_id=chain_id, required=self.required_chain_id)
        return chain_id

    async def require_chain(self) -> ChainCheck:
        """Compare the wallet's chain with the required chain."""
        current = await self.current_chain()
        return ChainCheck(
            ok=current == self.required_chain_id,
            current=current,
            required=self.required_chain_id,
        )

    async def switch_to(self, chain_id: int | None = None) -> bool:
        """Ask the wallet to switch chains.

        Args:
            chain_id: Target chain. Defaults to the required chain.

        Returns:
            True if the wallet switched, False if it refused or failed.
        """
        target = self.required_chain_id if chain_id is None else chain_id
        try:
            await self._wallet.switch_chain(target)
        except Exception as e:
            log.warning("chain_switch_failed", target=target, error=str(e))
            return False

        self.last_observed = target
        log.info("chain_switched", chain_id=target)
        return True
