"""
Solana Ledger Client.

JSON-RPC access to the ledger: balances, token-account enumeration,
blockhashes, transaction submission and confirmation polling.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from ..sweep.errors import BroadcastFailed, ConfirmationUnknown, LedgerError
from ..sweep.models import BlockhashContext

logger = logging.getLogger(__name__)

_COMMITMENT_RANK = {"processed": 0, "confirmed": 1, "finalized": 2}


class SolanaTransactionStatus(str, Enum):
    """Status of a Solana transaction."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"
    FAILED = "failed"


@dataclass
class SolanaTransactionResult:
    """Result of a confirmation check."""
    signature: str
    status: SolanaTransactionStatus
    slot: Optional[int] = None
    error: Optional[str] = None
    confirmations: Optional[int] = None

    @property
    def is_success(self) -> bool:
        return self.status in (SolanaTransactionStatus.CONFIRMED, SolanaTransactionStatus.FINALIZED)


@dataclass
class SolanaRpcConfig:
    """Configuration for the Solana RPC connection."""
    rpc_url: str
    commitment: str = "confirmed"
    max_retries: int = 3
    timeout_s: float = 30.0
    confirm_timeout_s: float = 90.0
    poll_interval_s: float = 1.0


class LedgerClient:
    """
    Client for the Solana JSON-RPC API.

    Read calls are retried with linear backoff up to ``max_retries``.
    ``sendTransaction`` is posted exactly once and delegates rebroadcasting
    to the node through its ``maxRetries`` option.

    Usage:
        ledger = LedgerClient(SolanaRpcConfig(
            rpc_url="https://api.mainnet-beta.solana.com"
        ))

        lamports = await ledger.get_balance(address)
        context = await ledger.get_latest_blockhash()
        signature = await ledger.send_transaction(signed_tx_base64)
        result = await ledger.confirm_transaction(signature, context)
    """

    def __init__(self, config: SolanaRpcConfig, client: Optional[httpx.AsyncClient] = None):
        self._config = config
        self._client = client

    @property
    def config(self) -> SolanaRpcConfig:
        return self._config

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout_s)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _rpc_call(
        self,
        method: str,
        params: List[Any],
        retry: bool = True,
    ) -> Dict[str, Any]:
        """Make an RPC call to the Solana node."""
        client = await self._get_client()

        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": params,
        }

        attempts = self._config.max_retries if retry else 1
        for attempt in range(attempts):
            try:
                response = await client.post(
                    self._config.rpc_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
                response.raise_for_status()
                data = response.json()

                if "error" in data:
                    error = data["error"]
                    error_msg = error.get("message", str(error)) if isinstance(error, dict) else str(error)
                    raise LedgerError(f"RPC error in {method}: {error_msg}", details={"rpc_error": error})

                return data

            except httpx.HTTPStatusError as e:
                if attempt == attempts - 1:
                    raise LedgerError(f"HTTP error in {method}: {e.response.status_code}")
                await asyncio.sleep(0.5 * (attempt + 1))
            except LedgerError:
                raise
            except (httpx.HTTPError, ValueError) as e:
                if attempt == attempts - 1:
                    raise LedgerError(f"{method} failed: {e}")
                await asyncio.sleep(0.5 * (attempt + 1))

        raise LedgerError("Max retries exceeded")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_balance(self, address: str) -> int:
        """Native balance of ``address`` in lamports."""
        result = await self._rpc_call(
            "getBalance",
            [address, {"commitment": self._config.commitment}],
        )
        value = (result.get("result") or {}).get("value")
        if value is None:
            raise LedgerError("getBalance returned no value")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise LedgerError(f"Malformed getBalance reply: {e}") from e

    async def get_token_accounts_by_owner(
        self,
        owner: str,
        program_id: str,
    ) -> List[Dict[str, Any]]:
        """
        Token accounts owned by ``owner`` under one token program.

        Args:
            owner: Wallet address
            program_id: Token program (standard or Token-2022)

        Returns:
            List of parsed accounts with address, mint, amount and decimals

        Raises:
            LedgerError: on transport failure or a reply without an account list
        """
        result = await self._rpc_call(
            "getTokenAccountsByOwner",
            [
                owner,
                {"programId": program_id},
                {"encoding": "jsonParsed", "commitment": self._config.commitment},
            ],
        )
        return self._parse_token_accounts(result, default_program=program_id)

    async def get_token_accounts_by_mint(self, owner: str, mint: str) -> List[Dict[str, Any]]:
        """Token accounts owned by ``owner`` holding ``mint``, across all programs."""
        result = await self._rpc_call(
            "getTokenAccountsByOwner",
            [
                owner,
                {"mint": mint},
                {"encoding": "jsonParsed", "commitment": self._config.commitment},
            ],
        )
        return self._parse_token_accounts(result)

    @staticmethod
    def _parse_token_accounts(
        result: Dict[str, Any],
        default_program: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        try:
            items = (result.get("result") or {}).get("value") or []
        except AttributeError as e:
            raise LedgerError(f"Malformed getTokenAccountsByOwner reply: {e}") from e
        if not isinstance(items, list):
            raise LedgerError("Malformed getTokenAccountsByOwner reply: value is not a list")

        accounts = []
        for item in items:
            try:
                account = item.get("account") or {}
                data = account.get("data") or {}
                parsed = data.get("parsed") if isinstance(data, dict) else None
                if not isinstance(parsed, dict):
                    continue
                info = parsed.get("info") or {}
                token_amount = info.get("tokenAmount") or {}
                accounts.append({
                    "address": item.get("pubkey"),
                    "mint": info.get("mint"),
                    "owner": info.get("owner"),
                    "amount": int(token_amount.get("amount", 0)),
                    "decimals": int(token_amount.get("decimals", 0)),
                    "program_id": account.get("owner") or default_program,
                })
            except (TypeError, ValueError, AttributeError) as e:
                # One bad entry must not hide the rest of the program's accounts
                pubkey = item.get("pubkey") if isinstance(item, dict) else None
                logger.warning("Skipping malformed token account %s: %s", pubkey, e)
        return accounts

    async def get_token_account_balance(self, account: str) -> int:
        """Raw base-unit balance of a token account."""
        result = await self._rpc_call(
            "getTokenAccountBalance",
            [account, {"commitment": self._config.commitment}],
        )
        try:
            return int(result["result"]["value"]["amount"])
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerError(f"Malformed getTokenAccountBalance reply for {account}: {e}") from e

    async def get_latest_blockhash(self) -> BlockhashContext:
        """Fetch a fresh blockhash with its validity bound."""
        result = await self._rpc_call(
            "getLatestBlockhash",
            [{"commitment": self._config.commitment}],
        )
        value = (result.get("result") or {}).get("value") or {}
        blockhash = value.get("blockhash")
        if not blockhash:
            raise LedgerError("getLatestBlockhash returned no blockhash")
        try:
            last_valid = int(value.get("lastValidBlockHeight", 0))
        except (TypeError, ValueError) as e:
            raise LedgerError(f"Malformed getLatestBlockhash reply: {e}") from e
        return BlockhashContext(blockhash=blockhash, last_valid_block_height=last_valid)

    async def get_block_height(self) -> int:
        result = await self._rpc_call(
            "getBlockHeight",
            [{"commitment": self._config.commitment}],
        )
        return int(result.get("result", 0))

    async def get_signature_status(self, signature: str) -> Optional[Dict[str, Any]]:
        result = await self._rpc_call(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": False}],
        )
        statuses = (result.get("result") or {}).get("value") or [None]
        return statuses[0]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def simulate_transaction(self, transaction: str) -> Dict[str, Any]:
        """
        Simulate a signed transaction without sending it.

        Args:
            transaction: Base64 encoded transaction

        Returns:
            Simulation result with logs and error info
        """
        options = {
            "encoding": "base64",
            "commitment": "processed",
            "replaceRecentBlockhash": True,
        }

        result = await self._rpc_call(
            "simulateTransaction",
            [transaction, options],
        )

        sim_result = (result.get("result") or {}).get("value") or {}
        return {
            "error": sim_result.get("err"),
            "logs": sim_result.get("logs") or [],
            "units_consumed": sim_result.get("unitsConsumed"),
        }

    async def send_transaction(
        self,
        signed_transaction: str,
        skip_preflight: bool = True,
    ) -> str:
        """
        Submit a signed transaction.

        Args:
            signed_transaction: Base64 encoded signed transaction
            skip_preflight: Skip the node's own preflight simulation

        Returns:
            Transaction signature (base58)
        """
        options = {
            "encoding": "base64",
            "skipPreflight": skip_preflight,
            "preflightCommitment": "processed",
            "maxRetries": self._config.max_retries,
        }

        try:
            result = await self._rpc_call(
                "sendTransaction",
                [signed_transaction, options],
                retry=False,
            )
        except LedgerError as e:
            raise BroadcastFailed(e.message, details=e.context.details) from e

        signature = result.get("result")
        if not signature:
            raise BroadcastFailed("No signature returned from sendTransaction")
        return signature

    async def confirm_transaction(
        self,
        signature: str,
        context: BlockhashContext,
        timeout_s: Optional[float] = None,
    ) -> SolanaTransactionResult:
        """
        Wait until ``signature`` reaches the configured commitment.

        Polls with exponential backoff. An on-chain error returns a FAILED
        result; expiry of the blockhash or the timeout raises
        ConfirmationUnknown since the outcome cannot be known.

        Args:
            signature: Transaction signature (base58)
            context: Blockhash the transaction was signed against
            timeout_s: Maximum time to wait

        Returns:
            SolanaTransactionResult with final status
        """
        timeout = timeout_s if timeout_s is not None else self._config.confirm_timeout_s
        target_rank = _COMMITMENT_RANK.get(self._config.commitment, 1)
        start_time = time.monotonic()
        interval = self._config.poll_interval_s

        while (time.monotonic() - start_time) < timeout:
            try:
                status = await self.get_signature_status(signature)
            except LedgerError as e:
                logger.warning("Signature status lookup failed for %s: %s", signature, e.message)
                status = None

            if status:
                if status.get("err") is not None:
                    return SolanaTransactionResult(
                        signature=signature,
                        status=SolanaTransactionStatus.FAILED,
                        slot=status.get("slot"),
                        error=str(status.get("err")),
                    )
                reached = status.get("confirmationStatus") or "processed"
                if _COMMITMENT_RANK.get(reached, 0) >= target_rank:
                    return SolanaTransactionResult(
                        signature=signature,
                        status=(
                            SolanaTransactionStatus.FINALIZED
                            if reached == "finalized"
                            else SolanaTransactionStatus.CONFIRMED
                        ),
                        slot=status.get("slot"),
                        confirmations=status.get("confirmations"),
                    )
            elif context.last_valid_block_height:
                try:
                    height = await self.get_block_height()
                except LedgerError:
                    height = 0
                if height > context.last_valid_block_height:
                    raise ConfirmationUnknown(
                        "Blockhash expired before the transaction was observed",
                        signature=signature,
                        details={"block_height": height},
                    )

            await asyncio.sleep(interval)
            # Exponential backoff, max 5 seconds
            interval = min(interval * 1.5, 5.0)

        raise ConfirmationUnknown(
            "Transaction confirmation timed out",
            signature=signature,
        )


__all__ = [
    "LedgerClient",
    "SolanaRpcConfig",
    "SolanaTransactionResult",
    "SolanaTransactionStatus",
]
