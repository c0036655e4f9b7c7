import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field

from ..core.sweep.orchestrator import SweepOrchestrator
from .deps import get_orchestrator, require_burn_auth

logger = logging.getLogger(__name__)

router = APIRouter()


class RunBurnRequest(BaseModel):
    amount_lamports: Optional[int] = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("amount_lamports", "amountLamports"),
        description="Override for the native swap amount; ignored unless below the computed amount",
    )


@router.post("/run-burn", dependencies=[Depends(require_burn_auth)])
async def run_burn(
    req: Optional[RunBurnRequest] = Body(default=None),
    orchestrator: SweepOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """Run one sweep-and-burn cycle and return its RunResult."""
    logger.info("run-burn called")
    try:
        result = await orchestrator.run(amount_override=req.amount_lamports if req else None)
    except Exception as e:
        logger.exception("run-burn failed")
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": str(e) or "run-burn_failed"},
        )

    return JSONResponse(
        status_code=200 if result.success else 500,
        content=result.to_dict(),
    )
