"""Coordination layer - tip sync, publishing and batched file locks."""

from .batch import BatchCoordinator, BatchResult, FileOutcome, FileResult
from .file_locks import LockRecord, LockService
from .publisher import PublishReport, WorktreePublisher
from .tip_sync import SkipReason, SyncReport, TipSynchronizer
from .tracked_files import FileListing, TrackedFile, build_listing

__all__ = [
    "BatchCoordinator",
    "BatchResult",
    "FileListing",
    "FileOutcome",
    "FileResult",
    "LockRecord",
    "LockService",
    "PublishReport",
    "SkipReason",
    "SyncReport",
    "TipSynchronizer",
    "TrackedFile",
    "WorktreePublisher",
    "build_listing",
]
