"""Structured logging configuration for MojoMint.

Every event goes through structlog and is rendered by the stdlib handlers:
- Console: Rich handler on stderr, level set by the -v flag
- File: one JSON object per line in {log_dir}/debug.jsonl, enabled by --log
"""

from __future__ import annotations

import logging
from pathlib import Path  # noqa: TC003 - Used at runtime for path operations
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from structlog.typing import Processor

JSONL_FILENAME = "debug.jsonl"

_configured = False
_file_handler: logging.FileHandler | None = None

# Libraries that flood DEBUG with transport chatter.
NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
    "web3",
    "websockets",
    "asyncio",
)


def _render_with(shared: list[Processor], *renderers: Processor) -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderers],
        foreign_pre_chain=shared,
    )


def configure_logging(
    verbosity: int = 0,
    log_to_file: bool = False,
    log_dir: Path | None = None,
) -> None:
    """Configure console and optional file logging.

    Calling it again replaces the previous handlers and closes the old file.

    Args:
        verbosity: 0=WARNING (default), 1=INFO, 2+=DEBUG.
        log_to_file: Append every event to ``{log_dir}/debug.jsonl``.
        log_dir: Directory for the JSONL file. Required if log_to_file=True.

    Raises:
        ValueError: If log_to_file=True but log_dir is not provided.
    """
    global _configured

    if log_to_file and log_dir is None:
        raise ValueError("log_dir is required when log_to_file=True")
    close_file_logging()

    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    levels = {0: logging.WARNING, 1: logging.INFO}
    console_level = levels.get(verbosity, logging.DEBUG)
    console = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        tracebacks_show_locals=verbosity >= 2,
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        markup=False,
        level=console_level,
    )
    console.setFormatter(_render_with(shared, structlog.dev.ConsoleRenderer(colors=False)))
    handlers: list[logging.Handler] = [console]

    if log_to_file and log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        _open_file_handler(log_dir / JSONL_FILENAME, shared)
        assert _file_handler is not None
        handlers.append(_file_handler)

    root_level = logging.DEBUG if (verbosity > 0 or log_to_file) else logging.WARNING
    logging.basicConfig(level=root_level, handlers=handlers, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        cache_logger_on_first_use=True,
    )
    _configured = True


def _open_file_handler(path: Path, shared: list[Processor]) -> None:
    global _file_handler

    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        _render_with(
            shared,
            structlog.processors.EventRenamer("message"),
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(default=str),
        )
    )
    _file_handler = handler


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Get a structured logger, configuring logging on first use."""
    if not _configured:
        configure_logging()

    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


def bind_wallet_context(address: str | None) -> None:
    """Attach the connected wallet address to every subsequent log event.

    Passing None clears the binding (wallet disconnected).
    """
    if address is None:
        structlog.contextvars.unbind_contextvars("wallet")
    else:
        structlog.contextvars.bind_contextvars(wallet=address)


def close_file_logging() -> None:
    """Flush and close the JSONL file handler, if one is open."""
    global _file_handler
    if _file_handler is not None:
        logging.getLogger().removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None
