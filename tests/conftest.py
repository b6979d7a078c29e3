"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from mojomint.chain.wallet import TxReceipt

ADDRESS = "0xAbCdEf0123456789abcdef0123456789ABCDEF01"
TX_HASH = "0xabc123"
FEE_WEI = 1_000_000_000_000_000


@pytest.fixture(autouse=True)
def clean_mojomint_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer MOJOMINT_* variables out of config defaults."""
    for name in (
        "MOJOMINT_NARRATIVE_URL",
        "MOJOMINT_METADATA_URL",
        "MOJOMINT_IMAGE_URL",
        "MOJOMINT_REWARDS_URL",
        "MOJOMINT_CHAIN_ID",
        "MOJOMINT_RPC_URL",
        "MOJOMINT_CONTRACT_ADDRESS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def wallet() -> MagicMock:
    """Wallet provider on Optimism that mints successfully."""
    mock = MagicMock()
    mock.address = ADDRESS
    mock.get_chain_id = AsyncMock(return_value=10)
    mock.switch_chain = AsyncMock(return_value=None)
    mock.read_mint_fee = AsyncMock(return_value=FEE_WEI)
    mock.send_mint = AsyncMock(return_value=TX_HASH)
    mock.wait_for_receipt = AsyncMock(
        return_value=TxReceipt(transaction_hash=TX_HASH, status=1, transfer_count=1)
    )
    return mock
