"""Tracked file listing - lock state per LFS file as seen by callers."""

from pathlib import Path
from typing import Iterable

from pydantic import BaseModel

from src.git_tools.paths import join_repo, normalize
from src.orchestrator.state_machine import BatchKind

from .batch import BatchResult
from .file_locks import LockRecord


class TrackedFile(BaseModel):
    """An LFS file and its current lock, if any."""
    path: str
    raw_path: str
    lock: LockRecord | None = None
    is_missing: bool = False  # locked but absent from the working tree


def build_listing(
    tracked_paths: Iterable[str],
    locks: Iterable[LockRecord],
    repo_path: str | Path,
) -> list[TrackedFile]:
    """Merge tracked files with lock records, sorted by path."""
    files: dict[str, TrackedFile] = {}
    for raw in tracked_paths:
        key = normalize(raw)
        if key:
            files[key] = TrackedFile(path=key, raw_path=str(raw))

    for lock in locks:
        key = normalize(lock.path)
        if key in files:
            files[key].lock = lock
        else:
            files[key] = TrackedFile(
                path=key,
                raw_path=lock.path,
                lock=lock,
                is_missing=not join_repo(repo_path, key).exists(),
            )

    return [files[key] for key in sorted(files)]


class FileListing:
    """In-memory listing, replaced on refresh and patched after batches."""

    def __init__(self) -> None:
        self.files: list[TrackedFile] = []

    def replace(self, files: Iterable[TrackedFile]) -> None:
        self.files = [
            file.model_copy(
                update={
                    "path": normalize(file.path),
                    "raw_path": normalize(file.raw_path or file.path),
                }
            )
            for file in files
        ]

    def find(self, path: str) -> TrackedFile | None:
        key = normalize(path)
        for file in self.files:
            if key in (normalize(file.path), normalize(file.raw_path)):
                return file
        return None

    def apply_lock(self, path: str, lock: LockRecord | None) -> None:
        file = self.find(path)
        if file is not None:
            file.lock = lock

    def apply_unlock(self, path: str) -> None:
        """Clear a lock; a missing file leaves the listing entirely."""
        file = self.find(path)
        if file is None:
            return
        if file.is_missing:
            self.files.remove(file)
        else:
            file.lock = None

    def apply_batch(
        self,
        result: BatchResult,
        locks: dict[str, LockRecord] | None = None,
    ) -> None:
        """Patch entries for every path the batch applied."""
        for path, response in result.ok.items():
            if result.kind == BatchKind.UNLOCK:
                self.apply_unlock(path)
            else:
                lock = (locks or {}).get(path)
                if lock is None:
                    lock = LockRecord.from_lfs(response)
                self.apply_lock(path, lock)
