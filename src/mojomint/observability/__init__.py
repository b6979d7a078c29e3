"""Observability module for MojoMint: structured logging."""

from mojomint.observability.logging import (
    bind_wallet_context,
    close_file_logging,
    configure_logging,
    get_logger,
)

__all__ = [
    "bind_wallet_context",
    "close_file_logging",
    "configure_logging",
    "get_logger",
]
