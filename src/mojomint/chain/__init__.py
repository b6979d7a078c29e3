"""Chain access: wallet capability protocol, network guard, web3 adapter."""

from mojomint.chain.guard import ChainCheck, NetworkGuard
from mojomint.chain.wallet import TxReceipt, WalletProvider

__all__ = [
    "ChainCheck",
    "NetworkGuard",
    "TxReceipt",
    "WalletProvider",
]
