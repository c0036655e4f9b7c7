"""
Treasury sweep-and-burn pipeline.

The orchestrator lives in ``burn_worker.core.sweep.orchestrator`` and the
holdings scanner in ``burn_worker.core.sweep.inventory``.
"""

from .burn import (
    BURN_INSTRUCTION_TAG,
    build_burn_instruction,
    build_burn_transaction,
    decode_burn_data,
    encode_burn_data,
)
from .errors import (
    BroadcastFailed,
    ConfigInvalid,
    ConfirmationUnknown,
    ErrorCategory,
    FatalSweepError,
    KeyMismatch,
    LedgerError,
    LegError,
    QuoteUnavailable,
    ScanDegraded,
    SimulationFailed,
    SweepError,
    TransactionBuildFailed,
)
from .models import (
    LAMPORTS_PER_SOL,
    NATIVE_SOL_MINT,
    TOKEN_2022_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    BalanceSnapshot,
    BlockhashContext,
    BurnRecord,
    BurnStatus,
    LegStatus,
    RunResult,
    SwapLeg,
    SweepState,
    TargetBalance,
    TokenHolding,
)
from .spend import SpendDecision, compute_spendable

__all__ = [
    "BURN_INSTRUCTION_TAG",
    "build_burn_instruction",
    "build_burn_transaction",
    "decode_burn_data",
    "encode_burn_data",
    "BroadcastFailed",
    "ConfigInvalid",
    "ConfirmationUnknown",
    "ErrorCategory",
    "FatalSweepError",
    "KeyMismatch",
    "LedgerError",
    "LegError",
    "QuoteUnavailable",
    "ScanDegraded",
    "SimulationFailed",
    "SweepError",
    "TransactionBuildFailed",
    "LAMPORTS_PER_SOL",
    "NATIVE_SOL_MINT",
    "TOKEN_2022_PROGRAM_ID",
    "TOKEN_PROGRAM_ID",
    "BalanceSnapshot",
    "BlockhashContext",
    "BurnRecord",
    "BurnStatus",
    "LegStatus",
    "RunResult",
    "SwapLeg",
    "SweepState",
    "TargetBalance",
    "TokenHolding",
    "SpendDecision",
    "compute_spendable",
]
