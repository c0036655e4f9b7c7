"""
Sweep run models and types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

LAMPORTS_PER_SOL = 1_000_000_000

# Wrapped-SOL mint, used by the aggregator as the native coin's pseudo-mint.
NATIVE_SOL_MINT = "So11111111111111111111111111111111111111112"

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"
TOKEN_PROGRAM_IDS = (TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID)


class SweepState(str, Enum):
    """Orchestrator lifecycle states."""
    IDLE = "idle"
    BALANCE_CHECKED = "balance_checked"
    BELOW_THRESHOLD = "below_threshold"      # Terminal, no side effects
    NATIVE_SWAP_ATTEMPTED = "native_swap_attempted"
    TOKEN_SWAPS_ATTEMPTED = "token_swaps_attempted"
    BALANCE_OF_TARGET_READ = "balance_of_target_read"
    BURN_ATTEMPTED = "burn_attempted"
    DONE = "done"
    FAILED = "failed"                        # Fatal error before completion


class LegStatus(str, Enum):
    """Outcome of a single swap leg."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    UNCERTAIN = "uncertain"      # Submitted, confirmation not verified


class BurnStatus(str, Enum):
    """Outcome of the burn step."""
    BURNED = "burned"
    NOTHING_TO_BURN = "nothing_to_burn"
    FAILED = "failed"
    UNCERTAIN = "uncertain"
    NOT_ATTEMPTED = "not_attempted"


@dataclass(frozen=True)
class BalanceSnapshot:
    """Native-coin balance read at the start of a run."""
    lamports: int
    commitment: str
    taken_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def sol(self) -> float:
        return self.lamports / LAMPORTS_PER_SOL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lamports": self.lamports,
            "sol": self.sol,
            "commitment": self.commitment,
            "taken_at": self.taken_at.isoformat(),
        }


@dataclass(frozen=True)
class TokenHolding:
    """A non-zero token account owned by the treasury wallet."""
    account: str                 # Token account address
    mint: str
    raw_amount: int              # Base units
    decimals: int
    program_id: str              # Token program owning the account


@dataclass(frozen=True)
class BlockhashContext:
    """Recent blockhash and the last block height it stays valid for."""
    blockhash: str
    last_valid_block_height: int


@dataclass
class SwapLeg:
    """One attempted conversion into the target mint."""
    input_mint: str
    output_mint: str
    input_amount: int
    status: LegStatus = LegStatus.SKIPPED
    signature: Optional[str] = None
    failure_reason: Optional[str] = None
    error_category: Optional[str] = None
    quoted_out_amount: Optional[str] = None
    route: List[str] = field(default_factory=list)     # Aggregator route labels, read-only

    @property
    def is_success(self) -> bool:
        return self.status == LegStatus.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_mint": self.input_mint,
            "output_mint": self.output_mint,
            "input_amount": self.input_amount,
            "status": self.status.value,
            "signature": self.signature,
            "failure_reason": self.failure_reason,
            "error_category": self.error_category,
            "quoted_out_amount": self.quoted_out_amount,
            "route": list(self.route),
        }


@dataclass
class BurnRecord:
    """Outcome of burning the target-mint balance."""
    mint: str
    amount_burned: int = 0
    status: BurnStatus = BurnStatus.NOT_ATTEMPTED
    signature: Optional[str] = None
    token_account: Optional[str] = None
    failure_reason: Optional[str] = None
    error_category: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mint": self.mint,
            "amount_burned": self.amount_burned,
            "status": self.status.value,
            "signature": self.signature,
            "token_account": self.token_account,
            "failure_reason": self.failure_reason,
            "error_category": self.error_category,
        }


@dataclass
class RunResult:
    """Aggregate outcome of one orchestrator run."""
    run_id: str
    wallet: str
    state: SweepState = SweepState.IDLE
    balance_before: Optional[BalanceSnapshot] = None
    threshold_lamports: int = 0
    swaps: List[SwapLeg] = field(default_factory=list)
    burn: Optional[BurnRecord] = None
    error: Optional[Dict[str, Any]] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        """True when the run reached a terminal state without a fatal error."""
        return self.state in (SweepState.DONE, SweepState.BELOW_THRESHOLD) and self.error is None

    @property
    def failed_legs(self) -> List[SwapLeg]:
        return [leg for leg in self.swaps if leg.status in (LegStatus.FAILED, LegStatus.UNCERTAIN)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.success,
            "run_id": self.run_id,
            "wallet": self.wallet,
            "state": self.state.value,
            "balance_before": self.balance_before.to_dict() if self.balance_before else None,
            "threshold_lamports": self.threshold_lamports,
            "swaps": [leg.to_dict() for leg in self.swaps],
            "burn": self.burn.to_dict() if self.burn else None,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


@dataclass(frozen=True)
class TargetBalance:
    """The wallet's largest target-mint token account after swaps."""
    account: str
    raw_amount: int
    program_id: str
