"""Blob resolution - content ids of paths at a reference."""

from .client import GitClient
from .errors import BlobNotFound
from .paths import normalize


class BlobResolver:
    """Answers existence and blob-id questions without reading file bytes."""

    def __init__(self, client: GitClient):
        self.client = client

    async def exists_at(self, ref: str, path: str) -> bool:
        return await self.client.object_exists(ref, normalize(path))

    async def blob_id(self, ref: str, path: str) -> str:
        """Return the object id of `path` at `ref`, or raise BlobNotFound."""
        key = normalize(path)
        blob = await self.client.resolve_object(ref, key)
        if blob is None:
            raise BlobNotFound(ref, key)
        return blob

    async def blob_id_or_none(self, ref: str, path: str) -> str | None:
        try:
            return await self.blob_id(ref, path)
        except BlobNotFound:
            return None
