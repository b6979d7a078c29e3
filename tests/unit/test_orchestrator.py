"""Tests for the mint orchestrator state machine."""

from __future__ import annotations

import asyncio
import random
import re
from unittest.mock import AsyncMock, MagicMock

import pytest

from mojomint.chain.wallet import TxReceipt
from mojomint.config import MintConfig, MintPolicy
from mojomint.errors import (
    ContractRevertError,
    ErrorCategory,
    InsufficientFundsError,
    WalletRejectedError,
)
from mojomint.metadata import decode_token_uri
from mojomint.narrative import NarrativeSession, get_path
from mojomint.orchestrator import (
    MintAttempt,
    MintOrchestrator,
    MintSession,
    MintStatus,
    SessionRegistry,
)
from mojomint.services import RemoteServiceError
from mojomint.upload import UploadCoordinator

ADDRESS = "0xAbCdEf0123456789abcdef0123456789ABCDEF01"
FEE = 1_000_000_000_000_000


def _ready_session(selection: str = "A") -> MintSession:
    return MintSession(address=ADDRESS, selection=selection, fee_wei=FEE)


def _finalized_narrative(key: str = "A") -> NarrativeSession:
    path = get_path(key)
    return NarrativeSession(
        user_id=ADDRESS,
        path=path,
        answers=["a"] * path.prompt_count,
        final_narrative="The dog ran. The cat sat...",
    )


def _uploader(pin: AsyncMock) -> UploadCoordinator:
    client = MagicMock()
    client.pin = pin
    return UploadCoordinator(client, rng=random.Random(1), clock=lambda: 1_700_000_000.0)


class TestLoadFee:
    @pytest.mark.asyncio()
    async def test_cached_after_first_read(self, wallet: MagicMock) -> None:
        orchestrator = MintOrchestrator(wallet)
        session = MintSession(address=ADDRESS)

        assert await orchestrator.load_fee(session) == FEE
        assert await orchestrator.load_fee(session) == FEE

        wallet.read_mint_fee.assert_awaited_once()
        assert session.fee_wei == FEE

    @pytest.mark.asyncio()
    async def test_zero_fee_uses_fallback(self, wallet: MagicMock) -> None:
        wallet.read_mint_fee.return_value = 0
        orchestrator = MintOrchestrator(wallet)
        session = MintSession(address=ADDRESS)

        assert await orchestrator.load_fee(session) == 777_000_000_000_000

    @pytest.mark.asyncio()
    async def test_read_failure_not_cached(self, wallet: MagicMock) -> None:
        wallet.read_mint_fee.side_effect = RuntimeError("rpc down")
        orchestrator = MintOrchestrator(wallet)
        session = MintSession(address=ADDRESS)

        with pytest.raises(RuntimeError):
            await orchestrator.load_fee(session)
        assert session.fee_wei is None


class TestMintSuccess:
    @pytest.mark.asyncio()
    async def test_data_uri_mint(self, wallet: MagicMock) -> None:
        wallet.wait_for_receipt.return_value = TxReceipt(
            transaction_hash="0xabc", status=1, transfer_count=1
        )
        wallet.send_mint.return_value = "0xabc"
        orchestrator = MintOrchestrator(wallet, rng=random.Random(42))
        session = _ready_session()

        attempt = await orchestrator.mint(session)

        assert attempt.status is MintStatus.SUCCESS
        assert attempt.tx_hash == "0xabc"
        assert attempt.error_message is None
        assert attempt.fee_wei == FEE
        assert session.attempt is attempt
        assert session.selection is None
        assert session.fee_wei == FEE

        kwargs = wallet.send_mint.await_args.kwargs
        assert kwargs["to"] == ADDRESS
        assert kwargs["value"] == FEE
        assert kwargs["token_uri"] == attempt.token_uri
        assert kwargs["token_uri"].startswith("data:application/json;base64,")
        decoded = decode_token_uri(kwargs["token_uri"])
        assert decoded == attempt.metadata
        assert kwargs["mojo"] == decoded.mojo_score
        assert kwargs["narrative"] == decoded.flavor

    @pytest.mark.asyncio()
    async def test_transfer_count_unknown_is_accepted(self, wallet: MagicMock) -> None:
        wallet.wait_for_receipt.return_value = TxReceipt(transaction_hash="0xabc")
        attempt = await MintOrchestrator(wallet).mint(_ready_session())
        assert attempt.status is MintStatus.SUCCESS

    @pytest.mark.asyncio()
    async def test_rewards_awarded(self, wallet: MagicMock) -> None:
        rewards = MagicMock()
        rewards.award = AsyncMock(return_value="0xreward")
        orchestrator = MintOrchestrator(wallet, rewards=rewards)

        attempt = await orchestrator.mint(_ready_session("B"))

        assert attempt.reward_tx_hash == "0xreward"
        address, mojo, path = rewards.award.await_args.args
        assert (address, path) == (ADDRESS, "B")
        assert attempt.metadata is not None
        assert mojo == attempt.metadata.mojo_score

    @pytest.mark.asyncio()
    async def test_reward_failure_is_a_warning(self, wallet: MagicMock) -> None:
        rewards = MagicMock()
        rewards.award = AsyncMock(side_effect=RemoteServiceError("rewards", "HTTP 503"))
        orchestrator = MintOrchestrator(wallet, rewards=rewards)

        attempt = await orchestrator.mint(_ready_session())

        assert attempt.status is MintStatus.SUCCESS
        assert attempt.reward_tx_hash is None
        assert any("reward" in w.lower() for w in attempt.warnings)

    @pytest.mark.asyncio()
    async def test_rewards_disabled_by_policy(self, wallet: MagicMock) -> None:
        rewards = MagicMock()
        rewards.award = AsyncMock(return_value="0xreward")
        config = MintConfig(policy=MintPolicy(award_rewards=False))
        orchestrator = MintOrchestrator(wallet, config=config, rewards=rewards)

        await orchestrator.mint(_ready_session())

        rewards.award.assert_not_awaited()


class TestGuards:
    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        ("session", "message"),
        [
            (MintSession(address=None, selection="A", fee_wei=FEE), "Connect your wallet"),
            (MintSession(address=ADDRESS, selection=None, fee_wei=FEE), "Select a narrative"),
            (MintSession(address=ADDRESS, selection="A", fee_wei=None), "fee not loaded"),
        ],
    )
    async def test_precondition_failures(
        self, wallet: MagicMock, session: MintSession, message: str
    ) -> None:
        attempt = await MintOrchestrator(wallet).mint(session)

        assert attempt.status is MintStatus.ERROR
        assert attempt.error_category is ErrorCategory.GUARD_FAILURE
        assert message in (attempt.error_message or "")
        assert attempt.tx_hash is None
        wallet.send_mint.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_chain_mismatch_switches_and_blocks_mint(self, wallet: MagicMock) -> None:
        wallet.get_chain_id.return_value = 1
        orchestrator = MintOrchestrator(wallet)
        session = _ready_session()

        attempt = await orchestrator.mint(session)

        assert attempt.status is MintStatus.ERROR
        assert attempt.error_category is ErrorCategory.GUARD_FAILURE
        assert "Wrong network" in (attempt.error_message or "")
        wallet.switch_chain.assert_awaited_once_with(10)
        wallet.send_mint.assert_not_awaited()
        assert session.selection == "A"

    @pytest.mark.asyncio()
    async def test_unverifiable_chain_blocks_mint(self, wallet: MagicMock) -> None:
        wallet.get_chain_id.side_effect = RuntimeError("no provider")

        attempt = await MintOrchestrator(wallet).mint(_ready_session())

        assert attempt.error_message == "Can't verify network"
        wallet.send_mint.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_second_confirm_while_pending_is_rejected(self, wallet: MagicMock) -> None:
        release = asyncio.Event()

        async def slow_send(**_: object) -> str:
            await release.wait()
            return "0xabc"

        wallet.send_mint.side_effect = slow_send
        orchestrator = MintOrchestrator(wallet)
        session = _ready_session()

        first = asyncio.create_task(orchestrator.mint(session))
        while session.attempt.status is not MintStatus.PENDING:
            await asyncio.sleep(0)
        pending_attempt = session.attempt

        second = await orchestrator.mint(session)

        assert second is not pending_attempt
        assert second.status is MintStatus.ERROR
        assert second.error_message == "Transaction already in progress"
        assert session.attempt is pending_attempt
        assert session.attempt.status is MintStatus.PENDING

        release.set()
        result = await first
        assert result.status is MintStatus.SUCCESS
        assert wallet.send_mint.await_count == 1

    @pytest.mark.asyncio()
    async def test_narrative_flow_requires_finalized_narrative(self, wallet: MagicMock) -> None:
        orchestrator = MintOrchestrator(wallet, uploader=_uploader(AsyncMock()))
        session = _ready_session()
        session.narrative = NarrativeSession(user_id=ADDRESS)

        attempt = await orchestrator.mint_narrative(session)

        assert attempt.error_category is ErrorCategory.GUARD_FAILURE
        assert "Finalize" in (attempt.error_message or "")


class TestMintFailures:
    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        ("error", "category", "message"),
        [
            (
                WalletRejectedError("User rejected"),
                ErrorCategory.USER_REJECTED,
                "Transaction rejected by wallet",
            ),
            (
                InsufficientFundsError("low"),
                ErrorCategory.INSUFFICIENT_FUNDS,
                "Not enough ETH for mint",
            ),
            (ContractRevertError("Sold out"), ErrorCategory.CONTRACT_ERROR, "Sold out"),
            (RuntimeError("something odd"), ErrorCategory.UNKNOWN, "something odd"),
        ],
    )
    async def test_wallet_errors_classified(
        self,
        wallet: MagicMock,
        error: Exception,
        category: ErrorCategory,
        message: str,
    ) -> None:
        wallet.send_mint.side_effect = error
        session = _ready_session()

        attempt = await MintOrchestrator(wallet).mint(session)

        assert attempt.status is MintStatus.ERROR
        assert attempt.error_category is category
        assert attempt.error_message == message
        assert attempt.tx_hash is None
        assert session.selection == "A"
        assert session.fee_wei == FEE
        wallet.wait_for_receipt.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_malformed_receipt_does_not_leave_session_pending(
        self, wallet: MagicMock
    ) -> None:
        wallet.wait_for_receipt.return_value = None
        orchestrator = MintOrchestrator(wallet)
        session = _ready_session()

        failed = await orchestrator.mint(session)

        assert failed.status is MintStatus.ERROR
        assert failed.error_category is ErrorCategory.UNKNOWN
        assert session.attempt is failed
        assert not session.in_flight

        wallet.wait_for_receipt.return_value = TxReceipt(
            transaction_hash="0xabc123", transfer_count=1
        )
        retried = await orchestrator.mint(session)
        assert retried.status is MintStatus.SUCCESS
        assert wallet.send_mint.await_count == 2

    @pytest.mark.asyncio()
    async def test_reverted_receipt(self, wallet: MagicMock) -> None:
        wallet.wait_for_receipt.return_value = TxReceipt(transaction_hash="0xabc", status=0)

        attempt = await MintOrchestrator(wallet).mint(_ready_session())

        assert attempt.error_category is ErrorCategory.CONTRACT_ERROR
        assert attempt.tx_hash is None

    @pytest.mark.asyncio()
    @pytest.mark.parametrize("count", [0, 2])
    async def test_unexpected_transfer_count(self, wallet: MagicMock, count: int) -> None:
        wallet.wait_for_receipt.return_value = TxReceipt(
            transaction_hash="0xabc", transfer_count=count
        )

        attempt = await MintOrchestrator(wallet).mint(_ready_session())

        assert attempt.status is MintStatus.ERROR
        assert "exactly one Transfer" in (attempt.error_message or "")

    @pytest.mark.asyncio()
    async def test_confirmation_timeout(self, wallet: MagicMock) -> None:
        async def never(_: str) -> TxReceipt:
            await asyncio.Event().wait()
            raise AssertionError("unreachable")

        wallet.wait_for_receipt.side_effect = never
        config = MintConfig()
        config.chain.confirmation_timeout = 0.01

        attempt = await MintOrchestrator(wallet, config=config).mint(_ready_session())

        assert attempt.status is MintStatus.ERROR
        assert "not confirmed" in (attempt.error_message or "")

    @pytest.mark.asyncio()
    async def test_cancellation_ends_in_error(self, wallet: MagicMock) -> None:
        started = asyncio.Event()

        async def hang(**_: object) -> str:
            started.set()
            await asyncio.Event().wait()
            return "0xnever"

        wallet.send_mint.side_effect = hang
        session = _ready_session()
        task = asyncio.create_task(MintOrchestrator(wallet).mint(session))
        await started.wait()

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert session.attempt.status is MintStatus.ERROR
        assert session.attempt.error_category is ErrorCategory.USER_REJECTED
        assert session.attempt.error_message == "Mint cancelled"
        assert not session.in_flight

    @pytest.mark.asyncio()
    async def test_new_attempt_after_error(self, wallet: MagicMock) -> None:
        wallet.send_mint.side_effect = [WalletRejectedError("no"), "0xabc"]
        orchestrator = MintOrchestrator(wallet)
        session = _ready_session()

        failed = await orchestrator.mint(session)
        retried = await orchestrator.mint(session)

        assert failed.status is MintStatus.ERROR
        assert retried is not failed
        assert retried.status is MintStatus.SUCCESS


class TestNarrativeFlow:
    @pytest.mark.asyncio()
    async def test_pinned_uri_is_minted(self, wallet: MagicMock) -> None:
        pin = AsyncMock(return_value="ipfs://QmPinned")
        orchestrator = MintOrchestrator(wallet, uploader=_uploader(pin))
        session = _ready_session()
        session.narrative = _finalized_narrative()

        attempt = await orchestrator.mint_narrative(session)

        assert attempt.status is MintStatus.SUCCESS
        assert attempt.token_uri == "ipfs://QmPinned"
        assert attempt.warnings == []
        assert wallet.send_mint.await_args.kwargs["token_uri"] == "ipfs://QmPinned"
        metadata, user_id, _ = pin.await_args.args
        assert user_id == ADDRESS
        assert "The dog ran. The cat sat..." in metadata["description"]

    @pytest.mark.asyncio()
    async def test_pin_failure_mints_with_fallback(self, wallet: MagicMock) -> None:
        pin = AsyncMock(side_effect=RemoteServiceError("metadata", "HTTP 500", status=500))
        orchestrator = MintOrchestrator(wallet, uploader=_uploader(pin))
        session = _ready_session()
        session.narrative = _finalized_narrative()

        attempt = await orchestrator.mint_narrative(session)

        assert attempt.status is MintStatus.SUCCESS
        uri = wallet.send_mint.await_args.kwargs["token_uri"]
        assert re.fullmatch(r"ipfs://QmFallback1700000000000[0-9a-z]{8}abcdef", uri)
        assert attempt.token_uri == uri
        assert len(attempt.warnings) == 1

    @pytest.mark.asyncio()
    async def test_fallback_disallowed_by_policy(self, wallet: MagicMock) -> None:
        pin = AsyncMock(side_effect=RemoteServiceError("metadata", "HTTP 500", status=500))
        config = MintConfig(policy=MintPolicy(allow_fallback_uri=False))
        orchestrator = MintOrchestrator(wallet, config=config, uploader=_uploader(pin))
        session = _ready_session()
        session.narrative = _finalized_narrative()

        attempt = await orchestrator.mint_narrative(session)

        assert attempt.status is MintStatus.ERROR
        assert attempt.error_category is ErrorCategory.INFRASTRUCTURE_DEGRADED
        wallet.send_mint.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_generated_image_used(self, wallet: MagicMock) -> None:
        pin = AsyncMock(return_value="ipfs://QmPinned")
        orchestrator = MintOrchestrator(wallet, uploader=_uploader(pin))
        session = _ready_session()
        session.narrative = _finalized_narrative()
        session.narrative.image_uri = "ipfs://QmArt"

        attempt = await orchestrator.mint_narrative(session)

        assert attempt.metadata is not None
        assert attempt.metadata.image == "ipfs://QmArt"

    @pytest.mark.asyncio()
    async def test_selection_must_match_narrative_path(self, wallet: MagicMock) -> None:
        pin = AsyncMock(return_value="ipfs://QmPinned")
        orchestrator = MintOrchestrator(wallet, uploader=_uploader(pin))
        session = _ready_session("B")
        session.narrative = _finalized_narrative("A")

        attempt = await orchestrator.mint_narrative(session)

        assert attempt.error_category is ErrorCategory.GUARD_FAILURE
        assert "does not match" in (attempt.error_message or "")
        pin.assert_not_awaited()
        wallet.send_mint.assert_not_awaited()


class TestSessions:
    def test_registry_is_case_insensitive(self) -> None:
        registry = SessionRegistry()
        first = registry.get(ADDRESS)

        assert registry.get(ADDRESS.lower()) is first
        assert ADDRESS.upper() in registry
        assert len(registry) == 1

        registry.discard(ADDRESS)
        assert ADDRESS not in registry

    @pytest.mark.asyncio()
    async def test_sessions_are_independent(self, wallet: MagicMock) -> None:
        registry = SessionRegistry()
        one = registry.get(ADDRESS)
        two = registry.get("0x" + "22" * 20)
        for session in (one, two):
            session.select("c")
            session.fee_wei = FEE
        wallet.send_mint.side_effect = [WalletRejectedError("no"), "0xabc"]
        orchestrator = MintOrchestrator(wallet)

        await orchestrator.mint(one)
        await orchestrator.mint(two)

        assert one.attempt.status is MintStatus.ERROR
        assert two.attempt.status is MintStatus.SUCCESS
        assert one.selection == "C"
        assert two.selection is None

    def test_default_attempt_is_idle(self) -> None:
        assert MintSession().attempt == MintAttempt()
        assert MintSession().attempt.status is MintStatus.IDLE
