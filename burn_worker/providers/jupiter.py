"""
Jupiter Swap Provider for Solana.

Requests quotes and swap transactions from the Jupiter aggregator. Routing and
pricing are left entirely to Jupiter; this client never signs or submits.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import httpx

from .base import SwapProvider
from ..core.sweep.errors import QuoteUnavailable, TransactionBuildFailed

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://quote-api.jup.ag/v6"

_VERSION_SEGMENT = re.compile(r"^v\d+$")

# Quotes older than this are refused when building a transaction
QUOTE_TTL_SECONDS = 30


def normalize_base_url(base_url: str) -> str:
    """Append the API version to a host-only Jupiter URL such as https://quote-api.jup.ag."""
    base_url = base_url.strip().rstrip("/")
    if not base_url:
        return DEFAULT_BASE_URL
    last_segment = base_url.rsplit("/", 1)[-1]
    if not _VERSION_SEGMENT.match(last_segment):
        return f"{base_url}/v6"
    return base_url


@dataclass(frozen=True)
class SwapQuote:
    """
    Opaque quote returned by Jupiter.

    The raw response is forwarded untouched to the swap-build request; only
    the few fields needed for logging are read.
    """

    input_mint: str
    output_mint: str
    amount: int
    raw: Mapping[str, Any]
    fetched_at: float = field(default_factory=time.time)

    @property
    def out_amount(self) -> Optional[str]:
        value = self.raw.get("outAmount")
        return str(value) if value is not None else None

    @property
    def route_labels(self) -> List[str]:
        """AMM labels along the route, for reporting only."""
        labels = []
        for step in self.raw.get("routePlan") or []:
            swap_info = step.get("swapInfo") if isinstance(step, dict) else None
            label = swap_info.get("label") if isinstance(swap_info, dict) else None
            if label:
                labels.append(str(label))
        return labels

    @property
    def is_valid(self) -> bool:
        """Check if quote is still fresh enough to build from."""
        return (time.time() - self.fetched_at) < QUOTE_TTL_SECONDS


@dataclass(frozen=True)
class SwapTransaction:
    """Unsigned swap transaction built by Jupiter."""
    swap_transaction: str                       # Base64 encoded versioned transaction
    last_valid_block_height: int = 0
    priority_fee_lamports: int = 0


class JupiterSwapClient(SwapProvider):
    """
    Jupiter quote and swap-build client.

    Neither call retries on its own: a retried quote may be stale, so retry
    policy belongs to the caller.

    Usage:
        client = JupiterSwapClient(base_url="https://quote-api.jup.ag/v6")

        quote = await client.get_quote(
            input_mint=NATIVE_SOL_MINT,
            output_mint=target_mint,
            amount=1_000_000_000,
            slippage_bps=150,
        )
        swap = await client.build_swap_transaction(quote, wallet_address, unwrap_native=True)
    """

    name = "jupiter"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 30.0,
        priority_fee_lamports: int = 0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = normalize_base_url(base_url)
        self.timeout_s = timeout_s
        self.priority_fee_lamports = priority_fee_lamports
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def ready(self) -> bool:
        """Jupiter API requires no authentication."""
        return bool(self.base_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "Jupiter base URL not configured"}
        # Avoid hitting the API on every health check – report configured state.
        return {"status": "configured", "base_url": self.base_url}

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int = 50,
    ) -> SwapQuote:
        """
        Get an ExactIn swap quote.

        Args:
            input_mint: Input token mint address
            output_mint: Output token mint address
            amount: Amount in smallest units (lamports for SOL)
            slippage_bps: Slippage tolerance in basis points (150 = 1.5%)

        Returns:
            SwapQuote wrapping Jupiter's response

        Raises:
            QuoteUnavailable: on non-2xx status or a response without a route
        """
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": slippage_bps,
            "swapMode": "ExactIn",
        }

        client = await self._get_client()
        try:
            response = await client.get(f"{self.base_url}/quote", params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise QuoteUnavailable(
                f"HTTP error: {e.response.status_code}",
                mint=input_mint,
                details={"status_code": e.response.status_code},
            )
        except (httpx.HTTPError, ValueError) as e:
            raise QuoteUnavailable(f"Quote request failed: {e}", mint=input_mint)

        if not isinstance(data, dict):
            raise QuoteUnavailable("Unexpected quote response shape", mint=input_mint)
        if "error" in data:
            raise QuoteUnavailable(f"Jupiter quote error: {data['error']}", mint=input_mint)
        if not _has_route(data):
            raise QuoteUnavailable(
                f"No route from Jupiter for {input_mint} -> {output_mint}",
                mint=input_mint,
            )

        logger.info(
            "jupiter_quote input=%s output=%s amount=%s out_amount=%s",
            input_mint,
            output_mint,
            amount,
            data.get("outAmount"),
        )
        return SwapQuote(
            input_mint=input_mint,
            output_mint=output_mint,
            amount=int(amount),
            raw=data,
        )

    async def build_swap_transaction(
        self,
        quote: SwapQuote,
        user_public_key: str,
        unwrap_native: bool = True,
    ) -> SwapTransaction:
        """
        Build a swap transaction from a quote.

        Args:
            quote: The quote to build a transaction for, forwarded untouched
            user_public_key: Signer's wallet address
            unwrap_native: Let Jupiter wrap/unwrap SOL automatically

        Returns:
            SwapTransaction with the base64 encoded transaction

        Raises:
            TransactionBuildFailed: on non-2xx status or a missing payload
        """
        if not quote.raw:
            raise TransactionBuildFailed("Quote response required for swap transaction")

        if not quote.is_valid:
            raise TransactionBuildFailed("Quote has expired, please get a new quote")

        payload: Dict[str, Any] = {
            "quoteResponse": dict(quote.raw),
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": unwrap_native,
        }
        if self.priority_fee_lamports:
            payload["prioritizationFeeLamports"] = self.priority_fee_lamports

        client = await self._get_client()
        try:
            response = await client.post(f"{self.base_url}/swap", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise TransactionBuildFailed(
                f"HTTP error: {e.response.status_code}",
                mint=quote.input_mint,
                details={"status_code": e.response.status_code},
            )
        except (httpx.HTTPError, ValueError) as e:
            raise TransactionBuildFailed(f"Swap request failed: {e}", mint=quote.input_mint)

        if not isinstance(data, dict):
            raise TransactionBuildFailed("Unexpected swap response shape", mint=quote.input_mint)
        if "error" in data:
            raise TransactionBuildFailed(f"Jupiter swap error: {data['error']}", mint=quote.input_mint)

        swap_transaction = data.get("swapTransaction")
        if not swap_transaction or not isinstance(swap_transaction, str):
            raise TransactionBuildFailed("No swapTransaction from Jupiter", mint=quote.input_mint)

        return SwapTransaction(
            swap_transaction=swap_transaction,
            last_valid_block_height=int(data.get("lastValidBlockHeight") or 0),
            priority_fee_lamports=int(data.get("prioritizationFeeLamports") or 0),
        )


def _has_route(data: Mapping[str, Any]) -> bool:
    out_amount = data.get("outAmount")
    if out_amount is None:
        return False
    try:
        if int(out_amount) <= 0:
            return False
    except (TypeError, ValueError):
        return False
    route_plan = data.get("routePlan")
    return route_plan is None or bool(route_plan)


__all__ = [
    "DEFAULT_BASE_URL",
    "normalize_base_url",
    "JupiterSwapClient",
    "SwapQuote",
    "SwapTransaction",
]
