"""Token inventory scanning for the treasury wallet."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, AsyncIterator, Collection, Iterable, Sequence

from .errors import ScanDegraded, SweepError
from .models import TOKEN_PROGRAM_IDS, TokenHolding

if TYPE_CHECKING:
    from ..ledger.client import LedgerClient

logger = logging.getLogger(__name__)


class InventoryScanner:
    """
    Enumerates non-zero token holdings across every supported token program.

    A failure to enumerate one program is logged as ScanDegraded and that
    program's accounts are omitted; the scan itself never raises for it.
    """

    def __init__(
        self,
        ledger: "LedgerClient",
        program_ids: Sequence[str] = TOKEN_PROGRAM_IDS,
    ) -> None:
        self._ledger = ledger
        self._program_ids = tuple(program_ids)
        self.degraded: list[ScanDegraded] = []

    async def iter_holdings(
        self,
        owner: str,
        exclude: Collection[str] = (),
    ) -> AsyncIterator[TokenHolding]:
        """Yield each non-zero holding whose mint is not in ``exclude``; a fresh scan on every call."""
        self.degraded = []
        for program_id in self._program_ids:
            try:
                accounts = await self._ledger.get_token_accounts_by_owner(owner, program_id)
            except SweepError as exc:
                self._degrade(program_id, exc.message)
                continue
            except (TypeError, ValueError, AttributeError) as exc:
                self._degrade(program_id, f"malformed reply: {exc}")
                continue

            for holding in _to_holdings(accounts or [], program_id):
                if holding.mint in exclude:
                    continue
                yield holding

    async def list_holdings(self, owner: str, exclude: Collection[str] = ()) -> list[TokenHolding]:
        return [holding async for holding in self.iter_holdings(owner, exclude)]

    def _degrade(self, program_id: str, reason: str) -> None:
        self.degraded.append(
            ScanDegraded(
                f"Token account enumeration failed for program {program_id}: {reason}",
                details={"program_id": program_id},
            )
        )
        logger.warning("scan_degraded program=%s error=%s", program_id, reason)


def _to_holdings(accounts: Iterable[dict], program_id: str) -> Iterable[TokenHolding]:
    for account in accounts:
        try:
            mint = account.get("mint")
            address = account.get("address")
            amount = int(account.get("amount") or 0)
            decimals = int(account.get("decimals") or 0)
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning("Skipping malformed token account under %s: %s", program_id, exc)
            continue
        if not mint or not address or amount <= 0:
            continue
        yield TokenHolding(
            account=address,
            mint=mint,
            raw_amount=amount,
            decimals=decimals,
            program_id=account.get("program_id") or program_id,
        )
