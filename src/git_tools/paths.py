"""Path normalization - one canonical form for repository-relative paths."""

import posixpath
import re
from pathlib import Path
from typing import Iterable

_LEADING_DOT_SLASH = re.compile(r"^(\./+)+")


def normalize(path: str | Path | None) -> str:
    """Canonicalize a repository-relative path.

    Backslashes become forward slashes, leading ``./`` is stripped and
    redundant segments are collapsed, so ``a\\b/./c`` and ``a/b/c`` compare
    equal. Idempotent.
    """
    if path is None:
        return ""
    text = str(path).replace("\\", "/")
    text = _LEADING_DOT_SLASH.sub("", text)
    if not text:
        return ""
    normalized = posixpath.normpath(text)
    # normpath keeps a lone "." and a leading "//"
    if normalized == ".":
        return ""
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def join_repo(root: str | Path, rel: str) -> Path:
    """Join a normalized relative path onto a repository root."""
    return Path(root).joinpath(*normalize(rel).split("/"))


def unique_paths(paths: Iterable[str | Path | None]) -> list[str]:
    """Normalize, drop empties and dedupe, keeping first-seen order."""
    seen: dict[str, None] = {}
    for path in paths:
        key = normalize(path)
        if key:
            seen.setdefault(key, None)
    return list(seen)
