"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest
import structlog

from mojomint.observability import (
    bind_wallet_context,
    close_file_logging,
    configure_logging,
    get_logger,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    yield
    close_file_logging()
    structlog.contextvars.clear_contextvars()


def test_configure_logging_sets_level_warning() -> None:
    """Default verbosity (0) sets WARNING level."""
    configure_logging(verbosity=0)

    assert logging.getLogger().level == logging.WARNING


def test_configure_logging_verbose_sets_debug_root() -> None:
    """verbosity=1 opens the root logger; the console handler filters to INFO."""
    configure_logging(verbosity=1)

    assert logging.getLogger().level == logging.DEBUG


def test_get_logger_auto_configures() -> None:
    """get_logger configures logging if not already done."""
    import mojomint.observability.logging as log_module

    log_module._configured = False

    logger = get_logger("test")

    assert log_module._configured is True
    assert hasattr(logger, "info")


def test_configure_logging_suppresses_noisy_loggers() -> None:
    configure_logging(verbosity=2)

    for name in ("httpx", "web3", "urllib3"):
        assert logging.getLogger(name).level == logging.WARNING


def test_file_logging_requires_log_dir() -> None:
    with pytest.raises(ValueError, match="log_dir is required"):
        configure_logging(verbosity=0, log_to_file=True, log_dir=None)


def test_file_logging_creates_directory(tmp_path: Path) -> None:
    log_dir = tmp_path / "logs"
    configure_logging(verbosity=0, log_to_file=True, log_dir=log_dir)

    assert (log_dir / "debug.jsonl").exists()


def test_reconfiguration_closes_handler(tmp_path: Path) -> None:
    import mojomint.observability.logging as log_module

    configure_logging(verbosity=0, log_to_file=True, log_dir=tmp_path)
    first_handler = log_module._file_handler
    assert first_handler is not None

    configure_logging(verbosity=0, log_to_file=True, log_dir=tmp_path)

    assert first_handler.stream is None or first_handler.stream.closed
    assert log_module._file_handler is not None


def test_jsonl_handler_writes_context(tmp_path: Path) -> None:
    """Event kwargs and the bound wallet address land in debug.jsonl."""
    configure_logging(verbosity=2, log_to_file=True, log_dir=tmp_path)
    bind_wallet_context("0xabc")

    get_logger("test.jsonl").info("mint_submitted", tx_hash="0x1", fee_wei=42)
    close_file_logging()

    entries = [json.loads(line) for line in (tmp_path / "debug.jsonl").read_text().splitlines()]
    entry = next(e for e in entries if e.get("message") == "mint_submitted")
    assert entry["tx_hash"] == "0x1"
    assert entry["fee_wei"] == 42
    assert entry["wallet"] == "0xabc"
    assert entry["level"] == "info"
    assert entry["logger"] == "test.jsonl"
    assert "timestamp" in entry


def test_bind_wallet_context_none_unbinds() -> None:
    bind_wallet_context("0xabc")
    bind_wallet_context(None)

    assert "wallet" not in structlog.contextvars.get_contextvars()
