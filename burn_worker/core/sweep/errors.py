"""
Error Classification

Defines the error taxonomy for sweep runs.
Fatal errors abort a run before any ledger mutation; leg errors are caught at
the leg boundary and recorded in that leg's result.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Categories of errors surfaced in run results."""

    CONFIG = "config_invalid"
    KEY_MISMATCH = "key_mismatch"
    QUOTE = "quote_unavailable"
    BUILD = "transaction_build_failed"
    BROADCAST = "broadcast_failed"
    SIMULATION = "simulation_failed"
    CONFIRMATION = "confirmation_unknown"
    SCAN = "scan_degraded"
    LEDGER = "ledger_error"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    fatal: bool = False
    signature: Optional[str] = None
    mint: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class SweepError(Exception):
    """Base class for every error raised by the sweep pipeline."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    fatal: bool = False

    def __init__(
        self,
        message: str,
        *,
        signature: Optional[str] = None,
        mint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = ErrorContext(
            category=self.category,
            fatal=self.fatal,
            signature=signature,
            mint=mint,
            details=details or {},
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.category.value,
            "message": self.message,
        }
        if self.context.signature:
            payload["signature"] = self.context.signature
        if self.context.details:
            payload["details"] = self.context.details
        return payload


# Fatal errors: the run is rejected before any side effect.
class FatalSweepError(SweepError):
    fatal = True


class ConfigInvalid(FatalSweepError, ValueError):
    """A required input is missing or malformed."""

    category = ErrorCategory.CONFIG


class KeyMismatch(FatalSweepError):
    """The signing key does not derive the configured wallet address."""

    category = ErrorCategory.KEY_MISMATCH


# Per-leg errors: recorded on the leg, never raised past the orchestrator.
class LegError(SweepError):
    pass


class QuoteUnavailable(LegError):
    """The aggregator returned no usable route."""

    category = ErrorCategory.QUOTE


class TransactionBuildFailed(LegError):
    """The aggregator could not build a swap transaction."""

    category = ErrorCategory.BUILD


class BroadcastFailed(LegError):
    """The signed transaction could not be submitted."""

    category = ErrorCategory.BROADCAST


class SimulationFailed(BroadcastFailed):
    """Pre-send simulation reported an error; nothing was submitted."""

    category = ErrorCategory.SIMULATION


class ConfirmationUnknown(LegError):
    """
    Submission succeeded but the outcome could not be verified in time.

    Never retried automatically: resubmitting could double-spend.
    """

    category = ErrorCategory.CONFIRMATION


class LedgerError(SweepError):
    """Transport or RPC-level failure talking to the ledger node."""

    category = ErrorCategory.LEDGER


class ScanDegraded(SweepError):
    """One token program could not be enumerated."""

    category = ErrorCategory.SCAN


def classify_error(error: BaseException) -> ErrorCategory:
    """Map an arbitrary exception onto a result category."""
    if isinstance(error, SweepError):
        return error.category
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SweepError",
    "FatalSweepError",
    "ConfigInvalid",
    "KeyMismatch",
    "LegError",
    "QuoteUnavailable",
    "TransactionBuildFailed",
    "BroadcastFailed",
    "SimulationFailed",
    "ConfirmationUnknown",
    "LedgerError",
    "ScanDegraded",
    "classify_error",
]
