"""WalletProvider backed by web3.py over JSON-RPC.

Works against any node or wallet bridge that exposes an unlocked account
through ``eth_accounts`` / ``eth_sendTransaction`` (a local signer, a dev
node, or an RPC proxy in front of a browser wallet).
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted

from mojomint.chain.wallet import TxReceipt
from mojomint.errors import (
    ContractRevertError,
    InsufficientFundsError,
    WalletError,
    WalletRejectedError,
)
from mojomint.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable

log = get_logger(__name__)

# EIP-1193 "user rejected request"
_USER_REJECTED_CODE = 4001

# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

MINT_CONTRACT_ABI: list[dict[str, Any]] = [
    {
        "name": "mintFee",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "mint",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "tokenURI", "type": "string"},
            {"name": "mojo", "type": "uint256"},
            {"name": "narrative", "type": "string"},
        ],
        "outputs": [],
    },
]


def _to_hex(value: Any) -> str:
    if isinstance(value, str):
        return value if value.startswith("0x") else f"0x{value}"
    return "0x" + bytes(value).hex()


def _translate_error(e: Exception) -> Exception:
    """Map a web3 / node error onto the wallet error hierarchy."""
    if isinstance(e, ContractLogicError):
        reason = str(e.message if getattr(e, "message", None) else e)
        return ContractRevertError(reason.removeprefix("execution reverted: "))

    message = str(e)
    lowered = message.lower()
    if "rejected" in lowered or "denied" in lowered:
        return WalletRejectedError(message)
    if "insufficient funds" in lowered:
        return InsufficientFundsError(message)
    return WalletError(message)


class Web3Wallet:
    """Wallet adapter using ``web3.AsyncWeb3``.

    Args:
        rpc_url: JSON-RPC endpoint.
        contract_address: Mint contract address.
        account: Sending account. If None, the first of ``eth_accounts`` is
            used after ``connect()``.
        receipt_timeout: Seconds to wait for a receipt.
        w3: Pre-built AsyncWeb3 instance (tests, custom providers).
    """

    def __init__(
        self,
        rpc_url: str | None,
        contract_address: str,
        account: str | None = None,
        *,
        receipt_timeout: float = 300.0,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        if w3 is None:
            if not rpc_url:
                raise WalletError(
                    "An RPC URL is required. "
                    "Set MOJOMINT_RPC_URL or chain.rpc_url in mojomint.yaml."
                )
            w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self._w3 = w3
        self._contract = w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(contract_address),
            abi=MINT_CONTRACT_ABI,
        )
        self._contract_address = contract_address.lower()
        self._account = AsyncWeb3.to_checksum_address(account) if account else None
        self._receipt_timeout = receipt_timeout

    @property
    def address(self) -> str | None:
        return self._account

    async def connect(self) -> str | None:
        """Pick the node's first account when none was given."""
        if self._account is None:
            accounts = await self._call(self._w3.eth.accounts)
            self._account = accounts[0] if accounts else None
            log.info("wallet_connected", address=self._account)
        return self._account

    async def _call(self, awaitable: Awaitable[Any]) -> Any:
        try:
            return await awaitable
        except (WalletError, asyncio.CancelledError):
            raise
        except Exception as e:
            raise _translate_error(e) from e

    async def get_chain_id(self) -> int:
        return int(await self._call(self._w3.eth.chain_id))

    async def switch_chain(self, chain_id: int) -> None:
        params = [{"chainId": hex(chain_id)}]
        response = await self._call(
            self._w3.provider.make_request("wallet_switchEthereumChain", params)
        )
        error = response.get("error") if isinstance(response, dict) else None
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            if code == _USER_REJECTED_CODE:
                raise WalletRejectedError(message)
            raise WalletError(f"Chain switch failed: {message}")

    async def read_mint_fee(self) -> int:
        return int(await self._call(self._contract.functions.mintFee().call()))

    async def send_mint(
        self,
        *,
        to: str,
        token_uri: str,
        mojo: int,
        narrative: str,
        value: int,
    ) -> str:
        if self._account is None:
            raise WalletError("No account connected")
        call = self._contract.functions.mint(
            AsyncWeb3.to_checksum_address(to), token_uri, mojo, narrative
        )
        tx_hash = await self._call(call.transact({"from": self._account, "value": value}))
        return _to_hex(tx_hash)

    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout
            )
        except TimeExhausted as e:
            raise WalletError(
                f"Transaction {tx_hash} not mined after {self._receipt_timeout}s"
            ) from e

        transfers = 0
        for entry in receipt.get("logs", []):
            topics = entry.get("topics") or []
            emitter = str(entry.get("address", "")).lower()
            if topics and _to_hex(topics[0]).lower() == TRANSFER_TOPIC and (
                emitter == self._contract_address
            ):
                transfers += 1

        return TxReceipt(
            transaction_hash=_to_hex(receipt["transactionHash"]),
            status=int(receipt.get("status", 1)),
            transfer_count=transfers,
            block_number=receipt.get("blockNumber"),
        )
