from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict

if TYPE_CHECKING:
    from .jupiter import SwapQuote, SwapTransaction


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: float = 10

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass

    async def close(self) -> None:
        """Release network resources"""


class SwapProvider(Provider):
    """Aggregator that quotes and builds swaps; never signs or submits"""

    @abstractmethod
    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int = 50,
    ) -> "SwapQuote":
        """Quote an exact-in swap of ``amount`` base units"""
        pass

    @abstractmethod
    async def build_swap_transaction(
        self,
        quote: "SwapQuote",
        user_public_key: str,
        unwrap_native: bool = True,
    ) -> "SwapTransaction":
        """Build an unsigned transaction from an untouched quote"""
        pass
