from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api import burn, health
from .api.deps import UnauthorizedError, close_orchestrator
from .config import settings
from .core.sweep.errors import FatalSweepError
from .logging_config import setup_logging
from .middleware import RequestLoggingMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    yield
    await close_orchestrator()


app = FastAPI(
    title="Treasury Burn Worker",
    description="Sweeps treasury balances into the target token and burns it",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(UnauthorizedError)
async def unauthorized_handler(request: Request, exc: UnauthorizedError) -> JSONResponse:
    return JSONResponse(status_code=401, content={"ok": False, "error": "unauthorized"})


@app.exception_handler(FatalSweepError)
async def fatal_error_handler(request: Request, exc: FatalSweepError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"ok": False, **exc.to_dict()})


app.include_router(health.router, tags=["Health"])
app.include_router(burn.router, tags=["Burn"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "Treasury Burn Worker",
        "version": "0.1.0",
        "health": "/health",
        "trigger": "/run-burn",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "burn_worker.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower()
    )
