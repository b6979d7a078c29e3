"""Wallet capability protocol.

The workflow never talks to a chain directly. It needs four capabilities
from whatever wallet is connected: read the active chain, ask for a chain
switch, read the mint fee, and sign/submit the mint call.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from mojomint.errors import (
    ContractRevertError,
    InsufficientFundsError,
    WalletError,
    WalletRejectedError,
)

__all__ = [
    "ContractRevertError",
    "InsufficientFundsError",
    "TxReceipt",
    "WalletError",
    "WalletProvider",
    "WalletRejectedError",
]


@dataclass(frozen=True)
class TxReceipt:
    """Confirmed transaction.

    Attributes:
        transaction_hash: 0x-prefixed hash.
        status: 1 for success, 0 for a reverted transaction.
        transfer_count: Number of ERC-721 ``Transfer`` events emitted by the
            mint contract, when the wallet can report it.
        block_number: Block the transaction was included in.
    """

    transaction_hash: str
    status: int = 1
    transfer_count: int | None = None
    block_number: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1


@runtime_checkable
class WalletProvider(Protocol):
    """Capabilities the mint workflow needs from a connected wallet."""

    @property
    def address(self) -> str | None:
        """Connected account, or None when no wallet is connected."""
        ...

    async def get_chain_id(self) -> int:
        """Chain id the wallet is currently on."""
        ...

    async def switch_chain(self, chain_id: int) -> None:
        """Ask the wallet to switch networks.

        Raises:
            WalletRejectedError: If the user declines.
            WalletError: If the wallet cannot switch.
        """
        ...

    async def read_mint_fee(self) -> int:
        """Read ``mintFee()`` from the mint contract, in wei."""
        ...

    async def send_mint(
        self,
        *,
        to: str,
        token_uri: str,
        mojo: int,
        narrative: str,
        value: int,
    ) -> str:
        """Sign and submit ``mint(to, tokenURI, mojo, narrative)`` with ``value`` wei.

        Returns:
            Transaction hash.

        Raises:
            WalletRejectedError: The user declined the signature prompt.
            InsufficientFundsError: Balance does not cover value plus gas.
            ContractRevertError: The call reverted during estimation.
        """
        ...

    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        """Block until the transaction is mined."""
        ...
