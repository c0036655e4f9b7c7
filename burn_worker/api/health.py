from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..config import SweepConfig
from ..core.sweep.errors import SweepError
from ..core.sweep.models import LAMPORTS_PER_SOL
from ..core.sweep.orchestrator import SweepOrchestrator
from .deps import get_orchestrator, get_sweep_config

router = APIRouter()


@router.get("/health")
async def health(
    config: SweepConfig = Depends(get_sweep_config),
    orchestrator: SweepOrchestrator = Depends(get_orchestrator),
):
    """Report the treasury balance and configuration; no side effects."""
    try:
        lamports = await orchestrator.ledger.get_balance(config.wallet_address)
    except SweepError as e:
        return JSONResponse(status_code=500, content={"ok": False, "error": e.message})

    return {
        "ok": True,
        "wallet": config.wallet_address,
        "balance_lamports": lamports,
        "balance_sol": lamports / LAMPORTS_PER_SOL,
        "rpc": config.rpc_url,
        "threshold_sol": config.threshold_lamports / LAMPORTS_PER_SOL,
        "target_mint": config.target_mint,
    }


@router.get("/healthz")
async def liveness(orchestrator: SweepOrchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    """Liveness check that inspects provider configuration without network calls."""
    provider_status = {
        "jupiter": await orchestrator.swap_client.health_check(),
    }
    all_configured = all(
        status["status"] == "configured" for status in provider_status.values()
    )
    return {
        "status": "healthy" if all_configured else "degraded",
        "providers": provider_status,
    }
