"""Tip synchronization - bring lock candidates up to date with the tip."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import structlog

from src.git_tools.blobs import BlobResolver
from src.git_tools.client import GitClient
from src.git_tools.paths import join_repo, normalize

logger = structlog.get_logger()


class SkipReason(str, Enum):
    """Why a path was left out of a lock batch."""
    DIRTY = "dirty"
    MISSING = "missing"


@dataclass
class SyncReport:
    """Outcome of synchronizing a candidate set with the tip."""
    candidates: list[str] = field(default_factory=list)
    skipped: dict[str, SkipReason] = field(default_factory=dict)
    synced: list[str] = field(default_factory=list)


def split_tip_ref(tip_ref: str, default_remote: str) -> tuple[str, str]:
    """Split `origin/assets-tip` into remote and branch."""
    remote, sep, branch = tip_ref.partition("/")
    if not sep:
        return default_remote, tip_ref
    return remote, branch


def commit_message(
    paths: list[str],
    single: str,
    plural: str,
    limit: int,
    **context: str,
) -> tuple[str, str]:
    """Build a subject (singular or plural form) and a bounded path list body."""
    template = single if len(paths) == 1 else plural
    subject = template.format(path=paths[0], count=len(paths), **context)
    body = "\n".join(f"- {path}" for path in paths[:limit])
    return subject, body


def _is_under(path: str, changed: set[str]) -> bool:
    return any(path == entry or entry.startswith(path + "/") for entry in changed)


class TipSynchronizer:
    """Checks out tip content for stale candidates and commits it once."""

    def __init__(
        self,
        client: GitClient,
        blobs: BlobResolver,
        default_remote: str = "origin",
        commit_body_limit: int = 50,
    ):
        self.client = client
        self.blobs = blobs
        self.default_remote = default_remote
        self.commit_body_limit = commit_body_limit

    @property
    def repo_path(self) -> Path:
        return self.client.repo_path

    async def synchronize(self, paths: list[str], tip_ref: str) -> SyncReport:
        """Fetch the tip, drop dirty/missing paths and sync the rest.

        Fetch and commit failures propagate and abort the caller's batch.
        """
        report = SyncReport()
        if not paths:
            return report

        remote, branch = split_tip_ref(tip_ref, self.default_remote)
        await self.client.fetch(remote, branch)

        present: list[str] = []
        for path in paths:
            if join_repo(self.repo_path, path).exists():
                present.append(path)
            else:
                report.skipped[path] = SkipReason.MISSING

        changed: set[str] = set()
        if present:
            changed.update(normalize(p) for p in await self.client.changed_paths(present))
            changed.update(
                normalize(p) for p in await self.client.changed_paths(present, staged=True)
            )

        for path in present:
            if _is_under(path, changed):
                report.skipped[path] = SkipReason.DIRTY
            else:
                report.candidates.append(path)

        if report.skipped:
            logger.info(
                "Skipping paths with local state",
                skipped={path: reason.value for path, reason in report.skipped.items()},
            )

        for path in report.candidates:
            if not await self.blobs.exists_at(tip_ref, path):
                continue
            tip_blob = await self.blobs.blob_id(tip_ref, path)
            head_blob = await self.blobs.blob_id_or_none("HEAD", path)
            if tip_blob != head_blob:
                report.synced.append(path)

        if report.synced:
            await self.client.checkout_paths(tip_ref, report.synced)
            await self.client.add(report.synced)
            subject, body = commit_message(
                report.synced,
                single="Sync {path} from {tip_ref} before locking",
                plural="Sync {count} assets from {tip_ref} before locking",
                limit=self.commit_body_limit,
                tip_ref=tip_ref,
            )
            await self.client.commit(subject, body)
            logger.info("Synced assets from tip", tip_ref=tip_ref, count=len(report.synced))

        return report
