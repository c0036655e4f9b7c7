"""
Sweep Orchestrator

Sequences one treasury run:
threshold check -> native swap -> per-token swaps -> target balance -> burn.

Every leg is independently fallible. A failed leg is recorded on its SwapLeg
and the run moves on; only fatal errors (bad config, key mismatch, an
unreadable starting balance) stop a run, and those happen before any
transaction is submitted.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Dict, List, Optional

import structlog

from ..wallet.keypair import Wallet, sign_versioned_transaction
from .burn import build_burn_instruction, build_burn_transaction, serialize_transaction
from .errors import (
    BroadcastFailed,
    ConfirmationUnknown,
    FatalSweepError,
    LedgerError,
    LegError,
    SimulationFailed,
    SweepError,
    classify_error,
)
from .inventory import InventoryScanner
from .models import (
    NATIVE_SOL_MINT,
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
from .spend import compute_spendable

if TYPE_CHECKING:
    from solders.transaction import VersionedTransaction

    from ...config import SweepConfig
    from ...providers.base import SwapProvider
    from ..ledger.client import LedgerClient

logger = logging.getLogger(__name__)

# One lock per wallet address: two concurrent runs would race on the same
# balance and could reuse a blockhash.
_wallet_locks: Dict[str, asyncio.Lock] = {}


def _wallet_lock(address: str) -> asyncio.Lock:
    lock = _wallet_locks.get(address)
    if lock is None:
        lock = asyncio.Lock()
        _wallet_locks[address] = lock
    return lock


class SweepOrchestrator:
    """
    Runs the sweep-and-burn state machine for one treasury wallet.

    Usage:
        orchestrator = SweepOrchestrator.from_config(config)
        result = await orchestrator.run()
        if not result.success:
            ...
        for leg in result.failed_legs:
            ...
    """

    def __init__(
        self,
        config: "SweepConfig",
        wallet: Wallet,
        ledger: "LedgerClient",
        swap_client: "SwapProvider",
        scanner: Optional[InventoryScanner] = None,
    ):
        self.config = config
        self.wallet = wallet
        self.ledger = ledger
        self.swap_client = swap_client
        self.scanner = scanner or InventoryScanner(ledger)

    @classmethod
    def from_config(cls, config: "SweepConfig") -> "SweepOrchestrator":
        """Wire the orchestrator with real collaborators."""
        from ...providers.jupiter import JupiterSwapClient
        from ..ledger.client import LedgerClient, SolanaRpcConfig

        wallet = Wallet.from_secret(config.wallet_secret, config.wallet_address)
        ledger = LedgerClient(
            SolanaRpcConfig(
                rpc_url=config.rpc_url,
                commitment=config.commitment,
                max_retries=config.rpc_max_retries,
                timeout_s=config.request_timeout_s,
                confirm_timeout_s=config.confirm_timeout_s,
            )
        )
        swap_client = JupiterSwapClient(
            base_url=config.jupiter_base_url,
            timeout_s=config.request_timeout_s,
            priority_fee_lamports=config.priority_fee_lamports,
        )
        return cls(config, wallet, ledger, swap_client)

    async def close(self) -> None:
        await self.ledger.close()
        await self.swap_client.close()

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, amount_override: Optional[int] = None) -> RunResult:
        """
        Execute one full run.

        Args:
            amount_override: Optional lamport amount for the native leg. Only
                honoured when positive and below the computed spend amount.

        Returns:
            RunResult; inspect ``swaps`` and ``burn`` for the financial outcome
        """
        async with _wallet_lock(self.config.wallet_address):
            result = RunResult(
                run_id=uuid.uuid4().hex[:12],
                wallet=self.config.wallet_address,
                threshold_lamports=self.config.threshold_lamports,
            )
            with structlog.contextvars.bound_contextvars(run_id=result.run_id, wallet=result.wallet):
                try:
                    await self._run_stages(result, amount_override)
                except FatalSweepError as exc:
                    logger.error("Sweep run aborted: %s", exc.message)
                    result.state = SweepState.FAILED
                    result.error = exc.to_dict()
                except LedgerError as exc:
                    # Only reachable before any transaction: later stages
                    # catch ledger failures at their own boundary.
                    logger.error("Sweep run aborted, ledger unavailable: %s", exc.message)
                    result.state = SweepState.FAILED
                    result.error = exc.to_dict()
                except Exception as exc:
                    # Legs already submitted stay on the result so their
                    # signatures reach the caller.
                    logger.exception("Sweep run aborted by unexpected error in state %s", result.state.value)
                    result.state = SweepState.FAILED
                    result.error = {
                        "error": classify_error(exc).value,
                        "message": str(exc) or exc.__class__.__name__,
                    }
                finally:
                    result.finished_at = datetime.now(timezone.utc)

                logger.info(
                    "Sweep run finished state=%s swaps=%d failed_legs=%d burn=%s",
                    result.state.value,
                    len(result.swaps),
                    len(result.failed_legs),
                    result.burn.status.value if result.burn else None,
                )
            return result

    async def _run_stages(self, result: RunResult, amount_override: Optional[int]) -> None:
        self.wallet.verify_address(self.config.wallet_address)

        snapshot = await self.check_balance()
        result.balance_before = snapshot
        result.state = SweepState.BALANCE_CHECKED

        if snapshot.lamports < self.config.threshold_lamports:
            logger.info(
                "Balance %d below threshold %d, nothing to do",
                snapshot.lamports,
                self.config.threshold_lamports,
            )
            result.state = SweepState.BELOW_THRESHOLD
            return

        result.swaps.append(await self.swap_native(snapshot, amount_override))
        result.state = SweepState.NATIVE_SWAP_ATTEMPTED

        result.swaps.extend(await self.swap_tokens())
        result.state = SweepState.TOKEN_SWAPS_ATTEMPTED

        try:
            target = await self.read_target_balance()
        except LedgerError as exc:
            # Swaps may already have moved value; report and finish
            logger.error("Target balance unavailable: %s", exc.message)
            result.burn = BurnRecord(
                mint=self.config.target_mint,
                status=BurnStatus.FAILED,
                failure_reason=exc.message,
                error_category=exc.category.value,
            )
            result.state = SweepState.DONE
            return
        result.state = SweepState.BALANCE_OF_TARGET_READ

        result.burn = await self.burn_target(target)
        result.state = SweepState.BURN_ATTEMPTED

        result.state = SweepState.DONE

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def check_balance(self) -> BalanceSnapshot:
        lamports = await self.ledger.get_balance(self.wallet.address)
        logger.info("Native balance %d lamports (threshold %d)", lamports, self.config.threshold_lamports)
        return BalanceSnapshot(lamports=lamports, commitment=self.config.commitment)

    async def swap_native(self, snapshot: BalanceSnapshot, amount_override: Optional[int] = None) -> SwapLeg:
        """Convert the spendable native balance into the target mint."""
        decision = compute_spendable(
            snapshot.lamports,
            self.config.reserve_lamports,
            self.config.safety_fraction,
        )
        leg = SwapLeg(
            input_mint=NATIVE_SOL_MINT,
            output_mint=self.config.target_mint,
            input_amount=decision.amount,
        )
        if decision.is_zero:
            leg.status = LegStatus.SKIPPED
            leg.failure_reason = decision.reason
            logger.info("Native swap skipped: %s", decision.reason)
            return leg

        if amount_override is not None and 0 < amount_override < decision.amount:
            logger.info("Overriding native swap amount to %d lamports", amount_override)
            leg.input_amount = int(amount_override)

        return await self._execute_leg(leg, unwrap_native=True)

    async def swap_tokens(self) -> List[SwapLeg]:
        """Swap every other non-zero holding into the target mint."""
        exclude = {NATIVE_SOL_MINT, self.config.target_mint, *self.config.excluded_mints}
        holdings = await self.scanner.list_holdings(self.wallet.address, exclude=exclude)
        if not holdings:
            return []

        logger.info("Found %d token holdings to swap", len(holdings))
        semaphore = asyncio.Semaphore(max(1, self.config.swap_concurrency))

        async def _swap(holding: TokenHolding) -> SwapLeg:
            async with semaphore:
                leg = SwapLeg(
                    input_mint=holding.mint,
                    output_mint=self.config.target_mint,
                    input_amount=holding.raw_amount,
                )
                return await self._execute_leg(leg, unwrap_native=False)

        # gather keeps input order, so each leg lands in its own slot
        return list(await asyncio.gather(*(_swap(holding) for holding in holdings)))

    async def read_target_balance(self) -> Optional[TargetBalance]:
        """Re-read the target mint balance after the swaps."""
        accounts = await self.ledger.get_token_accounts_by_mint(self.wallet.address, self.config.target_mint)
        best: Optional[TargetBalance] = None
        for account in accounts:
            address = account.get("address")
            if not address:
                continue
            amount = await self.ledger.get_token_account_balance(address)
            if best is None or amount > best.raw_amount:
                best = TargetBalance(
                    account=address,
                    raw_amount=amount,
                    program_id=account.get("program_id") or TOKEN_PROGRAM_ID,
                )
        return best

    async def burn_target(self, target: Optional[TargetBalance]) -> BurnRecord:
        """Burn the full target-mint balance in its own transaction."""
        record = BurnRecord(mint=self.config.target_mint)
        if target is None or target.raw_amount <= 0:
            record.status = BurnStatus.NOTHING_TO_BURN
            logger.info("Nothing to burn")
            return record

        record.token_account = target.account
        try:
            context = await self.ledger.get_latest_blockhash()
            instruction = build_burn_instruction(
                token_account=target.account,
                mint=self.config.target_mint,
                owner=self.wallet.pubkey,
                raw_amount=target.raw_amount,
                program_id=target.program_id,
            )
            transaction = build_burn_transaction(instruction, self.wallet.keypair, context.blockhash)
            record.signature = str(transaction.signatures[0])
            await self._submit(transaction, context)
        except ConfirmationUnknown as exc:
            record.status = BurnStatus.UNCERTAIN
            record.failure_reason = exc.message
            record.error_category = exc.category.value
            logger.warning("Burn confirmation unknown for %s", record.signature)
            return record
        except SimulationFailed as exc:
            record.signature = None
            record.status = BurnStatus.FAILED
            record.failure_reason = exc.message
            record.error_category = exc.category.value
            logger.error("Burn simulation failed: %s", exc.message)
            return record
        except SweepError as exc:
            record.status = BurnStatus.FAILED
            record.failure_reason = exc.message
            record.error_category = exc.category.value
            logger.error("Burn failed: %s", exc.message)
            return record
        except ValueError as exc:
            record.status = BurnStatus.FAILED
            record.failure_reason = str(exc)
            record.error_category = classify_error(exc).value
            logger.error("Burn instruction rejected: %s", exc)
            return record

        record.status = BurnStatus.BURNED
        record.amount_burned = target.raw_amount
        logger.info("Burned %d units of %s in %s", target.raw_amount, self.config.target_mint, record.signature)
        return record

    # ------------------------------------------------------------------
    # Leg execution
    # ------------------------------------------------------------------

    async def _execute_leg(self, leg: SwapLeg, unwrap_native: bool) -> SwapLeg:
        """Quote, build, sign, submit and confirm one swap; never raises."""
        try:
            quote = await self.swap_client.get_quote(
                leg.input_mint,
                leg.output_mint,
                leg.input_amount,
                self.config.slippage_bps,
            )
            leg.quoted_out_amount = quote.out_amount
            leg.route = quote.route_labels

            built = await self.swap_client.build_swap_transaction(
                quote,
                self.wallet.address,
                unwrap_native=unwrap_native,
            )

            context: Optional[BlockhashContext] = None
            if self.config.refresh_swap_blockhash:
                context = await self.ledger.get_latest_blockhash()

            transaction = sign_versioned_transaction(
                self.wallet,
                built.swap_transaction,
                blockhash=context.blockhash if context else None,
            )
            if context is None or str(transaction.message.recent_blockhash) != context.blockhash:
                # Legacy messages keep the builder's blockhash and validity bound
                context = BlockhashContext(
                    blockhash=str(transaction.message.recent_blockhash),
                    last_valid_block_height=built.last_valid_block_height,
                )

            leg.signature = str(transaction.signatures[0])
            await self._submit(transaction, context)
        except ConfirmationUnknown as exc:
            leg.status = LegStatus.UNCERTAIN
            leg.failure_reason = exc.message
            leg.error_category = exc.category.value
            logger.warning("Swap %s confirmation unknown: %s", leg.input_mint, exc.message)
            return leg
        except SimulationFailed as exc:
            # Nothing reached the ledger
            leg.signature = None
            return self._fail_leg(leg, exc.message, exc.category.value)
        except LegError as exc:
            leg.signature = exc.context.signature or leg.signature
            return self._fail_leg(leg, exc.message, exc.category.value)
        except SweepError as exc:
            return self._fail_leg(leg, exc.message, exc.category.value)
        except Exception as exc:
            logger.exception("Unexpected error in swap leg for %s", leg.input_mint)
            return self._fail_leg(leg, str(exc) or exc.__class__.__name__, classify_error(exc).value)

        leg.status = LegStatus.SUCCEEDED
        logger.info("Swap %s -> %s confirmed: %s", leg.input_mint, leg.output_mint, leg.signature)
        return leg

    def _fail_leg(self, leg: SwapLeg, reason: str, category: str) -> SwapLeg:
        leg.status = LegStatus.FAILED
        leg.failure_reason = reason
        leg.error_category = category
        logger.warning("Swap %s failed (%s): %s", leg.input_mint, category, reason)
        return leg

    async def _submit(self, transaction: "VersionedTransaction", context: BlockhashContext) -> str:
        """Simulate (optionally), send and confirm a signed transaction."""
        encoded = serialize_transaction(transaction)
        local_signature = str(transaction.signatures[0])

        if self.config.simulate_before_send:
            try:
                simulation = await self.ledger.simulate_transaction(encoded)
            except LedgerError as exc:
                raise SimulationFailed(f"Simulation request failed: {exc.message}") from exc
            if simulation.get("error") is not None:
                raise SimulationFailed(
                    f"Simulation failed: {simulation['error']}",
                    details={"logs": list(simulation.get("logs") or [])[-10:]},
                )

        signature = await self.ledger.send_transaction(encoded)
        if signature != local_signature:
            logger.warning("Node returned signature %s, expected %s", signature, local_signature)

        outcome = await self.ledger.confirm_transaction(signature, context)
        if not outcome.is_success:
            raise BroadcastFailed(
                f"Transaction failed on-chain: {outcome.error}",
                signature=signature,
            )
        return signature


__all__ = ["SweepOrchestrator"]
