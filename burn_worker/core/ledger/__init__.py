"""
Ledger access for the burn worker.
"""

from .client import (
    LedgerClient,
    SolanaRpcConfig,
    SolanaTransactionResult,
    SolanaTransactionStatus,
)

__all__ = [
    "LedgerClient",
    "SolanaRpcConfig",
    "SolanaTransactionResult",
    "SolanaTransactionStatus",
]
