"""File locks - adapter over the remote Git LFS lock service."""

import json
from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, ValidationError

from src.git_tools.client import GitClient
from src.git_tools.errors import MalformedResponse
from src.git_tools.paths import normalize

logger = structlog.get_logger()


class LockRecord(BaseModel):
    """A lock as reported by the lock service. Never mutated locally."""
    id: str
    path: str
    owner: str | None = None
    locked_at: datetime | None = None

    @classmethod
    def from_lfs(cls, payload: dict[str, Any]) -> "LockRecord":
        """Build from git-lfs JSON (`owner` is an object with a `name`)."""
        if not isinstance(payload, dict):
            raise MalformedResponse(f"Unexpected lock payload: {payload!r}")
        owner = payload.get("owner") or {}
        try:
            return cls(
                id=str(payload["id"]),
                path=normalize(payload["path"]),
                owner=owner.get("name") if isinstance(owner, dict) else str(owner),
                locked_at=payload.get("locked_at"),
            )
        except (KeyError, ValidationError) as exc:
            raise MalformedResponse(f"Unexpected lock payload: {payload!r}") from exc


def _parse_json(output: str, what: str) -> Any:
    try:
        return json.loads(output)
    except json.JSONDecodeError as exc:
        raise MalformedResponse(
            f"{what} returned invalid JSON: {output.strip()[:200]!r}"
        ) from exc


class LockService:
    """Acquires and releases named locks through `git lfs`.

    Ownership is enforced by the remote; this class only relays calls and
    decodes their JSON output.
    """

    def __init__(self, client: GitClient):
        self.client = client

    async def lock(self, path: str) -> dict[str, Any]:
        """Acquire a lock, returning the service's JSON response."""
        output = await self.client.lfs_lock(path)
        data = _parse_json(output, f"lock {path}")
        logger.info("Acquired lock", path=path)
        return data

    async def unlock(self, path: str, force: bool = False) -> dict[str, Any]:
        """Release a lock; `force` bypasses the ownership check."""
        output = await self.client.lfs_unlock(path, force=force)
        data = _parse_json(output, f"unlock {path}")
        logger.info("Released lock", path=path, force=force)
        return data

    async def list_locks(self, path: str | None = None) -> list[LockRecord]:
        """List current locks, optionally for a single path."""
        output = await self.client.lfs_locks(path)
        data = _parse_json(output, "locks")
        if not isinstance(data, list):
            raise MalformedResponse(f"locks returned {type(data).__name__}, expected a list")
        return [LockRecord.from_lfs(entry) for entry in data]
