"""
Structured logging configuration using structlog.

JSON lines for the deployed worker, console output at DEBUG. Wallet key
material and the trigger token are masked before any renderer sees them.
"""

import logging
import sys
from typing import Any, MutableMapping, Optional, TextIO

import structlog

from .config import settings

# Event keys whose values must never be written out
SENSITIVE_KEYS = frozenset({
    "burn_wallet_secret_key",
    "wallet_secret",
    "secret_key",
    "burn_auth_token",
    "auth_token",
    "x-burn-auth",
    "x_burn_auth",
})


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    for key in SENSITIVE_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def setup_logging(
    log_level: Optional[str] = None,
    json_logs: Optional[bool] = None,
    stream: TextIO = sys.stdout,
) -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        log_level: Override log level (default: from settings.log_level)
        json_logs: Force JSON (True) or console (False) rendering; by default
            JSON unless the level is DEBUG
        stream: Where log lines go; the CLI passes stderr so its own output
            stays machine-readable
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    if json_logs is None:
        json_logs = level != logging.DEBUG

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Pipeline modules log through logging.getLogger; foreign_pre_chain gives
    # their records the bound run_id and wallet too.
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Every RPC poll is an httpx request
    for name in ("uvicorn.access", "httpcore", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)
