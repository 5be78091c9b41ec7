"""Batch state machine - one batch at a time per repository."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator

import structlog
from pydantic import BaseModel

from src.git_tools.errors import BatchInProgress

logger = structlog.get_logger()


class BatchState(str, Enum):
    """Repository batch lifecycle states."""
    IDLE = "idle"
    RUNNING = "running"


class BatchKind(str, Enum):
    """Kind of batch occupying a repository."""
    LOCK = "lock"
    UNLOCK = "unlock"


class BatchStatus(BaseModel):
    """Queryable busy-state of a repository."""
    repo: str
    state: BatchState
    kind: BatchKind | None = None
    started_at: datetime | None = None
    last_finished_at: datetime | None = None
    batches_run: int = 0


# Valid state transitions
TRANSITIONS: dict[BatchState, list[BatchState]] = {
    BatchState.IDLE: [BatchState.RUNNING],
    BatchState.RUNNING: [BatchState.IDLE],
}


class BatchStateMachine:
    """Guards a repository's working tree and index against overlapping batches.

    Execution is single-threaded and cooperative, so the state check and the
    transition to RUNNING happen without an await in between.
    """

    def __init__(self, repo: str):
        self.repo = repo
        self._status = BatchStatus(repo=repo, state=BatchState.IDLE)

    @property
    def state(self) -> BatchState:
        return self._status.state

    @property
    def busy(self) -> bool:
        return self._status.state == BatchState.RUNNING

    def status(self) -> BatchStatus:
        return self._status.model_copy()

    def _transition(self, new_state: BatchState) -> None:
        """Move to new state, validating against TRANSITIONS."""
        old_state = self._status.state
        valid_next = TRANSITIONS.get(old_state, [])
        if new_state not in valid_next:
            raise ValueError(
                f"Invalid transition: {old_state} -> {new_state}. "
                f"Valid: {valid_next}"
            )
        self._status.state = new_state

    @asynccontextmanager
    async def running(self, kind: BatchKind) -> AsyncIterator[BatchStatus]:
        """Hold the repository for one batch; reject overlapping entries."""
        if self.busy:
            logger.warning(
                "Batch rejected, repository busy",
                repo=self.repo,
                requested=kind,
                running=self._status.kind,
            )
            raise BatchInProgress(
                f"A {self._status.kind.value} batch is already running for {self.repo}"
            )

        self._transition(BatchState.RUNNING)
        self._status.kind = kind
        self._status.started_at = datetime.now(timezone.utc)
        logger.debug("Batch started", repo=self.repo, kind=kind)

        try:
            yield self.status()
        finally:
            self._transition(BatchState.IDLE)
            self._status.kind = None
            self._status.started_at = None
            self._status.last_finished_at = datetime.now(timezone.utc)
            self._status.batches_run += 1
            logger.debug("Batch finished", repo=self.repo, kind=kind)
