"""Shared FastAPI dependencies."""

from __future__ import annotations

import logging
import hmac
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header

from ..config import SweepConfig, settings
from ..core.sweep.orchestrator import SweepOrchestrator

logger = logging.getLogger(__name__)


class UnauthorizedError(Exception):
    """Trigger request without a valid x-burn-auth header."""


@lru_cache(maxsize=1)
def get_sweep_config() -> SweepConfig:
    return settings.to_sweep_config()


# Singleton instance
_orchestrator: Optional[SweepOrchestrator] = None


def get_orchestrator(config: SweepConfig = Depends(get_sweep_config)) -> SweepOrchestrator:
    """Get the singleton orchestrator, wiring it on first use."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = SweepOrchestrator.from_config(config)
    return _orchestrator


async def close_orchestrator() -> None:
    global _orchestrator
    if _orchestrator is not None:
        await _orchestrator.close()
        _orchestrator = None


async def require_burn_auth(
    x_burn_auth: Optional[str] = Header(default=None),
    config: SweepConfig = Depends(get_sweep_config),
) -> None:
    """Exact-match check of the shared secret header."""
    if not x_burn_auth or not hmac.compare_digest(
        x_burn_auth.encode("utf-8"), config.auth_token.encode("utf-8")
    ):
        logger.warning("Unauthorized /run-burn attempt")
        raise UnauthorizedError()
