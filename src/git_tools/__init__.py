"""Git tooling - process runner, git client, paths and blobs."""

from .blobs import BlobResolver
from .client import GitClient
from .errors import (
    BatchInProgress,
    BlobNotFound,
    CommandFailed,
    MalformedResponse,
    PushRejected,
    TipLockError,
    WorktreeError,
)
from .paths import join_repo, normalize, unique_paths
from .runner import CommandResult, ProcessRunner

__all__ = [
    "BatchInProgress",
    "BlobNotFound",
    "BlobResolver",
    "CommandFailed",
    "CommandResult",
    "GitClient",
    "MalformedResponse",
    "ProcessRunner",
    "PushRejected",
    "TipLockError",
    "WorktreeError",
    "join_repo",
    "normalize",
    "unique_paths",
]
