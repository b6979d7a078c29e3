"""Mint orchestration.

Sequences guards and the pending pipeline for one mint attempt:

    idle -> pending -> success | error

Guards run before an attempt enters ``pending``. Inside ``pending`` the
pipeline is a fixed list of steps; each returns a StepResult and the first
failed step ends the attempt. Every exception raised below this module is
converted to an attempt state here and nowhere else.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from mojomint.chain.guard import NetworkGuard
from mojomint.config import MintConfig, create_default_config
from mojomint.errors import (
    DUPLICATE_MESSAGE,
    ClassifiedError,
    ErrorCategory,
    classify_error,
)
from mojomint.metadata.builder import build_metadata
from mojomint.metadata.token_uri import encode_token_uri
from mojomint.narrative.paths import get_path
from mojomint.observability.logging import bind_wallet_context, get_logger

if TYPE_CHECKING:
    from mojomint.chain.wallet import TxReceipt, WalletProvider
    from mojomint.metadata.models import NFTMetadata
    from mojomint.narrative.session import NarrativeSession
    from mojomint.services.rewards import RewardClient
    from mojomint.upload import UploadCoordinator

log = get_logger(__name__)

CANCELLED_MESSAGE = "Mint cancelled"


class MintStatus(str, Enum):
    """Lifecycle of one mint attempt."""

    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class MintAttempt:
    """State of a single mint attempt.

    ``tx_hash`` is only set on success; ``error_message`` and
    ``error_category`` only on error. ``fee_wei`` is fixed when the attempt
    enters ``pending``.
    """

    status: MintStatus = MintStatus.IDLE
    fee_wei: int | None = None
    tx_hash: str | None = None
    error_message: str | None = None
    error_category: ErrorCategory | None = None
    token_uri: str | None = None
    metadata: NFTMetadata | None = None
    warnings: list[str] = field(default_factory=list)
    reward_tx_hash: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (MintStatus.SUCCESS, MintStatus.ERROR)


@dataclass
class MintSession:
    """Everything the orchestrator knows about one identity.

    Attributes:
        address: Connected wallet address, None when disconnected.
        narrative: Questionnaire state for the narrative-driven flow.
        selection: Selected path key. Cleared after a successful mint.
        fee_wei: Mint fee, loaded once and cached.
        attempt: Current (or last) mint attempt.
    """

    address: str | None = None
    narrative: NarrativeSession | None = None
    selection: str | None = None
    fee_wei: int | None = None
    attempt: MintAttempt = field(default_factory=MintAttempt)
    in_flight: bool = field(default=False, repr=False)

    def select(self, key: str) -> str:
        """Select a path by key; raises UnknownPathError for unknown keys."""
        self.selection = get_path(key).key
        return self.selection


class SessionRegistry:
    """Independent MintSession per wallet address (case-insensitive)."""

    def __init__(self) -> None:
        self._sessions: dict[str, MintSession] = {}

    def get(self, address: str) -> MintSession:
        """Return the session for ``address``, creating it on first use."""
        key = address.lower()
        session = self._sessions.get(key)
        if session is None:
            session = MintSession(address=address)
            self._sessions[key] = session
        return session

    def discard(self, address: str) -> None:
        self._sessions.pop(address.lower(), None)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and address.lower() in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


@dataclass
class StepResult:
    """Result of one pipeline step: a value, or the classified failure."""

    ok: bool
    value: Any = None
    error: ClassifiedError | None = None

    @classmethod
    def success(cls, value: Any = None) -> StepResult:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ClassifiedError) -> StepResult:
        return cls(ok=False, error=error)


def _guard(message: str) -> ClassifiedError:
    return ClassifiedError(ErrorCategory.GUARD_FAILURE, message)


class MintOrchestrator:
    """Runs mint attempts for MintSessions.

    Sessions are passed into every operation; the orchestrator itself holds
    only collaborators and configuration, so one instance can serve many
    sessions.

    Args:
        wallet: Connected wallet provider.
        guard: Network guard. Built from ``wallet`` and the configured chain
            id when omitted.
        config: Mint configuration. Defaults from ``create_default_config``.
        uploader: Upload coordinator, required by ``mint_narrative``.
        rewards: Reward worker client. None disables token rewards.
        rng: Random source for metadata draws.
    """

    def __init__(
        self,
        wallet: WalletProvider,
        guard: NetworkGuard | None = None,
        *,
        config: MintConfig | None = None,
        uploader: UploadCoordinator | None = None,
        rewards: RewardClient | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config or create_default_config()
        self._wallet = wallet
        self._guard = guard or NetworkGuard(wallet, self._config.chain.chain_id)
        self._uploader = uploader
        self._rewards = rewards
        self._rng = rng or random.Random()

    @property
    def guard(self) -> NetworkGuard:
        return self._guard

    @property
    def config(self) -> MintConfig:
        return self._config

    async def load_fee(self, session: MintSession) -> int:
        """Read the mint fee once per session and cache it.

        A zero fee reported by the contract is replaced by the configured
        fallback fee.

        Raises:
            WalletError: If the fee cannot be read. Nothing is cached.
        """
        if session.fee_wei is not None:
            return session.fee_wei

        fee = int(await self._wallet.read_mint_fee())
        if fee <= 0:
            fallback = self._config.chain.fallback_fee_wei
            log.warning("mint_fee_fallback", reported=fee, fallback_fee_wei=fallback)
            fee = fallback

        session.fee_wei = fee
        log.info("mint_fee_loaded", fee_wei=fee)
        return fee

    async def mint(self, session: MintSession) -> MintAttempt:
        """Mint with the metadata embedded as a base64 JSON data URI."""
        return await self._run(session, narrative_flow=False)

    async def mint_narrative(self, session: MintSession) -> MintAttempt:
        """Mint with metadata published through the upload coordinator.

        Requires a finalized narrative on ``session.narrative``.
        """
        return await self._run(session, narrative_flow=True)

    async def _run(self, session: MintSession, *, narrative_flow: bool) -> MintAttempt:
        if session.in_flight or session.attempt.status is MintStatus.PENDING:
            log.warning("mint_rejected_duplicate", address=session.address)
            return MintAttempt(
                status=MintStatus.ERROR,
                error_message=DUPLICATE_MESSAGE,
                error_category=ErrorCategory.GUARD_FAILURE,
            )

        session.in_flight = True
        try:
            bind_wallet_context(session.address)
            failure = await self._check_guards(session, narrative_flow=narrative_flow)
            if failure is not None:
                log.info("mint_guard_failed", reason=failure.message)
                attempt = MintAttempt()
                self._fail(attempt, failure)
                session.attempt = attempt
                return attempt

            attempt = MintAttempt(status=MintStatus.PENDING, fee_wei=session.fee_wei)
            session.attempt = attempt
            log.info(
                "mint_attempt_started",
                selection=session.selection,
                fee_wei=attempt.fee_wei,
                narrative_flow=narrative_flow,
            )

            try:
                result = await self._pipeline(session, attempt, narrative_flow=narrative_flow)
            except asyncio.CancelledError:
                cancelled = ClassifiedError(ErrorCategory.USER_REJECTED, CANCELLED_MESSAGE)
                self._fail(attempt, cancelled)
                raise
            except Exception as e:
                log.exception("mint_pipeline_error", error_type=type(e).__name__)
                self._fail(attempt, classify_error(e))
                return attempt

            if not result.ok:
                assert result.error is not None
                self._fail(attempt, result.error)
                return attempt

            receipt: TxReceipt = result.value
            attempt.tx_hash = receipt.transaction_hash
            attempt.status = MintStatus.SUCCESS
            log.info(
                "mint_confirmed",
                tx_hash=attempt.tx_hash,
                block_number=receipt.block_number,
                warnings=len(attempt.warnings),
            )
            path_key = session.selection or ""
            # Consumed: a repeat mint needs a fresh selection.
            session.selection = None

            await self._award_rewards(session, attempt, path_key)
            return attempt
        finally:
            session.in_flight = False

    async def _check_guards(
        self, session: MintSession, *, narrative_flow: bool
    ) -> ClassifiedError | None:
        """First unmet precondition, or None when the attempt may start."""
        if not session.address:
            return _guard("Connect your wallet first")
        if not session.selection:
            return _guard("Select a narrative path first")
        if session.fee_wei is None:
            return _guard("Mint fee not loaded")
        if narrative_flow:
            if self._uploader is None:
                return _guard("Metadata upload is not configured")
            if session.narrative is None or not session.narrative.is_finalized:
                return _guard("Finalize your narrative before minting")
            if session.narrative.path is None or (
                session.narrative.path.key != session.selection.upper()
            ):
                return _guard("Selected path does not match your narrative")

        check = await self._guard.require_chain()
        if not check.ok:
            if check.current is not None:
                switched = await self._guard.switch_to(check.required)
                log.info("mint_chain_mismatch", current=check.current, switched=switched)
            return _guard(check.message)
        return None

    async def _pipeline(
        self, session: MintSession, attempt: MintAttempt, *, narrative_flow: bool
    ) -> StepResult:
        result = self._build_metadata(session, attempt)
        if not result.ok:
            return result

        if narrative_flow:
            result = await self._publish_metadata(session, attempt)
        else:
            result = self._encode_metadata(attempt)
        if not result.ok:
            return result

        result = await self._submit(session, attempt)
        if not result.ok:
            return result

        result = await self._await_receipt(result.value)
        if not result.ok:
            return result

        return self._verify_receipt(result.value)

    def _build_metadata(self, session: MintSession, attempt: MintAttempt) -> StepResult:
        narrative = session.narrative
        try:
            attempt.metadata = build_metadata(
                session.selection or "",
                rng=self._rng,
                narrative=narrative.final_narrative if narrative else None,
                image=narrative.image_uri if narrative else None,
                path_images=self._config.path_images,
            )
        except Exception as e:
            return StepResult.failure(classify_error(e))
        return StepResult.success(attempt.metadata)

    def _encode_metadata(self, attempt: MintAttempt) -> StepResult:
        assert attempt.metadata is not None
        attempt.token_uri = encode_token_uri(attempt.metadata)
        return StepResult.success(attempt.token_uri)

    async def _publish_metadata(self, session: MintSession, attempt: MintAttempt) -> StepResult:
        assert self._uploader is not None
        assert attempt.metadata is not None
        assert session.address is not None
        upload = await self._uploader.publish(attempt.metadata, session.address)

        if upload.fallback_used:
            warning = upload.warning or "Metadata upload failed"
            if not self._config.policy.allow_fallback_uri:
                return StepResult.failure(
                    ClassifiedError(ErrorCategory.INFRASTRUCTURE_DEGRADED, warning)
                )
            attempt.warnings.append(warning)

        attempt.token_uri = upload.uri
        return StepResult.success(upload.uri)

    async def _submit(self, session: MintSession, attempt: MintAttempt) -> StepResult:
        assert attempt.metadata is not None
        assert attempt.token_uri is not None
        assert attempt.fee_wei is not None
        assert session.address is not None
        try:
            tx_hash = await self._wallet.send_mint(
                to=session.address,
                token_uri=attempt.token_uri,
                mojo=attempt.metadata.mojo_score,
                narrative=attempt.metadata.flavor,
                value=attempt.fee_wei,
            )
        except Exception as e:
            return StepResult.failure(classify_error(e))

        log.info("mint_submitted", tx_hash=tx_hash, fee_wei=attempt.fee_wei)
        return StepResult.success(tx_hash)

    async def _await_receipt(self, tx_hash: str) -> StepResult:
        timeout = self._config.chain.confirmation_timeout
        try:
            if timeout is None:
                receipt = await self._wallet.wait_for_receipt(tx_hash)
            else:
                receipt = await asyncio.wait_for(self._wallet.wait_for_receipt(tx_hash), timeout)
        except TimeoutError:
            return StepResult.failure(
                ClassifiedError(
                    ErrorCategory.UNKNOWN,
                    f"Transaction {tx_hash} not confirmed after {timeout:g}s",
                )
            )
        except Exception as e:
            return StepResult.failure(classify_error(e))

        if not receipt.transaction_hash:
            return StepResult.failure(
                ClassifiedError(ErrorCategory.UNKNOWN, "Receipt has no transaction hash")
            )
        return StepResult.success(receipt)

    def _verify_receipt(self, receipt: TxReceipt) -> StepResult:
        if not receipt.succeeded:
            return StepResult.failure(
                ClassifiedError(
                    ErrorCategory.CONTRACT_ERROR,
                    f"Transaction {receipt.transaction_hash} reverted",
                )
            )
        if receipt.transfer_count is not None and receipt.transfer_count != 1:
            return StepResult.failure(
                ClassifiedError(
                    ErrorCategory.CONTRACT_ERROR,
                    f"Expected exactly one Transfer event, got {receipt.transfer_count}",
                )
            )
        return StepResult.success(receipt)

    async def _award_rewards(
        self, session: MintSession, attempt: MintAttempt, path_key: str
    ) -> None:
        if self._rewards is None or not self._config.policy.award_rewards:
            return
        assert attempt.metadata is not None
        assert session.address is not None
        try:
            attempt.reward_tx_hash = await self._rewards.award(
                session.address, attempt.metadata.mojo_score, path_key
            )
        except Exception as e:
            log.warning("mojo_reward_failed", error=str(e), error_type=type(e).__name__)
            attempt.warnings.append(f"Mojo token reward failed: {e}")

    @staticmethod
    def _fail(attempt: MintAttempt, error: ClassifiedError) -> None:
        attempt.status = MintStatus.ERROR
        attempt.tx_hash = None
        attempt.error_category = error.category
        attempt.error_message = error.message
        log.warning(
            "mint_failed",
            category=error.category.value,
            message=error.message,
        )
