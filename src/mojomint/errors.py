"""Error taxonomy for the mint workflow.

Lower layers raise typed exceptions. The orchestrator is the only place
that turns them into user-facing categories via ``classify_error``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MojoMintError(Exception):
    """Base class for all MojoMint exceptions."""


class WalletError(MojoMintError):
    """Base class for failures reported by the wallet provider."""


class WalletRejectedError(WalletError):
    """The user declined a wallet prompt (signature, chain switch)."""


class InsufficientFundsError(WalletError):
    """The wallet balance does not cover the mint fee plus gas."""


class ContractRevertError(WalletError):
    """The mint contract reverted.

    Attributes:
        reason: Revert reason string as reported by the node, if any.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"execution reverted: {reason}" if reason else "execution reverted")


class ErrorCategory(str, Enum):
    """User-facing failure categories."""

    GUARD_FAILURE = "guard_failure"
    USER_REJECTED = "user_rejected"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    CONTRACT_ERROR = "contract_error"
    INFRASTRUCTURE_DEGRADED = "infrastructure_degraded"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ClassifiedError:
    """A failure mapped to a category plus the message shown to the user."""

    category: ErrorCategory
    message: str


REJECTED_MESSAGE = "Transaction rejected by wallet"
INSUFFICIENT_FUNDS_MESSAGE = "Not enough ETH for mint"
DUPLICATE_MESSAGE = "Transaction already in progress"

# Substrings providers put in error messages; checked in order.
_REJECTION_MARKERS = ("cancel", "reject", "denied")


def classify_error(exc: BaseException) -> ClassifiedError:
    """Map an exception raised during a mint attempt to an error category.

    Typed wallet errors are matched first. Untyped errors (from providers
    that only expose a message) fall back to substring matching.
    """
    if isinstance(exc, WalletRejectedError):
        return ClassifiedError(ErrorCategory.USER_REJECTED, REJECTED_MESSAGE)
    if isinstance(exc, InsufficientFundsError):
        return ClassifiedError(ErrorCategory.INSUFFICIENT_FUNDS, INSUFFICIENT_FUNDS_MESSAGE)
    if isinstance(exc, ContractRevertError):
        return ClassifiedError(ErrorCategory.CONTRACT_ERROR, exc.reason or str(exc))

    message = str(exc) or exc.__class__.__name__
    lowered = message.lower()

    if any(marker in lowered for marker in _REJECTION_MARKERS):
        return ClassifiedError(ErrorCategory.USER_REJECTED, REJECTED_MESSAGE)
    if "insufficient" in lowered:
        return ClassifiedError(ErrorCategory.INSUFFICIENT_FUNDS, INSUFFICIENT_FUNDS_MESSAGE)
    if "revert" in lowered:
        return ClassifiedError(ErrorCategory.CONTRACT_ERROR, message)
    if "duplicate transaction" in lowered:
        return ClassifiedError(ErrorCategory.GUARD_FAILURE, DUPLICATE_MESSAGE)
    return ClassifiedError(ErrorCategory.UNKNOWN, message)
