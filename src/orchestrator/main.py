"""Main service - HTTP bridge between the file browser and the lock engine."""

import logging
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel

from src.git_tools.errors import BatchInProgress, TipLockError

from .command_router import CommandOutcome, CommandRouter, LockBatch, UnlockBatch
from .config import Settings
from .state_machine import BatchStatus

logger = structlog.get_logger()
settings = Settings()


def configure_logging(level: str) -> None:
    """Filter structlog output at the configured level."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
    )


class LockRequest(BaseModel):
    """Lock a batch of paths."""
    repo: str
    paths: list[str]
    tip_ref: str | None = None


class UnlockRequest(BaseModel):
    """Publish and unlock a batch of paths."""
    repo: str
    paths: list[str]
    force: bool = False
    tip_branch: str | None = None


class BatchResponse(BaseModel):
    """Per-path partition of a batch."""
    ok: dict[str, Any] = {}
    errors: dict[str, str] = {}
    skipped: dict[str, str] = {}
    synced: list[str] = []
    published: list[str] = []
    summary: str | None = None


def to_response(outcome: CommandOutcome) -> BatchResponse:
    result = outcome.result
    return BatchResponse(
        ok=result.ok,
        errors=result.errors,
        skipped={path: reason.value for path, reason in result.skipped.items()},
        synced=result.synced,
        published=result.published,
        summary=outcome.summary,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    configure_logging(settings.log_level)
    logger.info("Starting tiplock service", tip_ref=settings.tip_ref)

    app.state.router = CommandRouter(settings)

    yield

    logger.info("Shutting down tiplock service")


app = FastAPI(
    title="tiplock",
    description="Asset lock coordination against a published tip branch",
    version="0.1.0",
    lifespan=lifespan,
)


async def _run(request: Request, command: LockBatch | UnlockBatch) -> BatchResponse:
    router: CommandRouter = request.app.state.router
    try:
        outcome = await router.dispatch(command)
    except BatchInProgress as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except TipLockError as exc:
        logger.error("Batch setup failed", repo=command.repo, error=str(exc))
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return to_response(outcome)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "tiplock"}


@app.post("/repos/lock")
async def lock_files(body: LockRequest, request: Request) -> BatchResponse:
    """Sync from the tip and lock each path."""
    return await _run(request, LockBatch(repo=body.repo, paths=body.paths, tip_ref=body.tip_ref))


@app.post("/repos/unlock")
async def unlock_files(body: UnlockRequest, request: Request) -> BatchResponse:
    """Publish to the tip and unlock each path."""
    return await _run(
        request,
        UnlockBatch(
            repo=body.repo,
            paths=body.paths,
            force=body.force,
            tip_branch=body.tip_branch,
        ),
    )


@app.get("/repos/status")
async def repo_status(repo: str, request: Request) -> BatchStatus:
    """Whether a batch is running for the repository."""
    router: CommandRouter = request.app.state.router
    return router.status(repo)


@app.get("/repos/files")
async def list_files(repo: str, request: Request):
    """Refresh and return the tracked-file listing."""
    router: CommandRouter = request.app.state.router
    try:
        files = await router.refresh(repo)
    except TipLockError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"files": files}


def cli():
    """CLI entry point."""
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    cli()
