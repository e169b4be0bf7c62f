"""Image storage and asset path resolution.

Every persisted entry points at a scoped storage key ``"{owner}/{name}"``.
Entries coming from the editor may still carry a bare file name (legacy
catalogs, freshly imported JSON). :class:`AssetPathResolver` turns those
into scoped keys by walking an ordered chain of :class:`AssetSource`
strategies and uploading the first hit. There is no fallback to an
unscoped path: a name no source can supply fails the whole save.
"""

import asyncio
import inspect
import logging
import mimetypes
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional, Protocol, Sequence, runtime_checkable

from hotwills.logging_config import log_upload
from hotwills.types import PATH_SEPARATOR, AssetNotFoundError, is_scoped_path
from hotwills.utils import chunked

from .context import SyncContext

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 100
LIST_PAGE_SIZE = 1000

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def sanitize_file_name(name: str) -> str:
    """Replace characters that are unsafe in storage keys with ``_``."""
    return _UNSAFE_NAME_CHARS.sub("_", name)


def scoped_path(owner_id: str, name: str) -> str:
    return f"{owner_id}{PATH_SEPARATOR}{sanitize_file_name(name)}"


def guess_content_type(name: str) -> str:
    content_type, _ = mimetypes.guess_type(name)
    return content_type or "application/octet-stream"


# =============================================================================
# Blobs and sources
# =============================================================================


@dataclass
class LocalBlob:
    """Image bytes supplied by a source."""

    name: str
    data: bytes
    content_type: Optional[str] = None


@runtime_checkable
class LocalBlobProvider(Protocol):
    """Local-import cache of images the user dropped into the editor.

    Implementations may be sync or async.
    """

    def get_local_blob_by_name(self, name: str) -> Any:
        """Return a :class:`LocalBlob` (or awaitable of one), or None."""
        ...


@dataclass
class SourceLookup:
    """Tagged outcome of one source in the resolver chain."""

    found: bool
    source: str
    blob: Optional[LocalBlob] = None
    reason: Optional[str] = None

    @classmethod
    def hit(cls, source: str, blob: LocalBlob) -> "SourceLookup":
        return cls(found=True, source=source, blob=blob)

    @classmethod
    def miss(cls, source: str, reason: str) -> "SourceLookup":
        return cls(found=False, source=source, reason=reason)


class AssetSource(Protocol):
    name: str

    async def lookup(self, file_name: str) -> SourceLookup: ...


class LocalBlobSource:
    """Images cached by the local-import collaborator."""

    name = "local"

    def __init__(self, provider: LocalBlobProvider):
        self.provider = provider

    async def lookup(self, file_name: str) -> SourceLookup:
        blob = self.provider.get_local_blob_by_name(file_name)
        if inspect.isawaitable(blob):
            blob = await blob
        if blob is None:
            return SourceLookup.miss(self.name, "not in local cache")
        if not isinstance(blob, LocalBlob):
            blob = LocalBlob(name=file_name, data=bytes(blob))
        return SourceLookup.hit(self.name, blob)


class BundledAssetSource:
    """Images shipped alongside the catalog in a directory."""

    name = "bundled"

    def __init__(self, directory: Path):
        self.directory = Path(directory).expanduser()

    def _find(self, file_name: str) -> Optional[Path]:
        if not self.directory.is_dir():
            return None
        candidate = self.directory / file_name
        if candidate.is_file() and candidate.parent == self.directory:
            return candidate
        lowered = file_name.lower()
        for path in self.directory.iterdir():
            if path.is_file() and path.name.lower() == lowered:
                return path
        return None

    async def lookup(self, file_name: str) -> SourceLookup:
        path = await asyncio.to_thread(self._find, file_name)
        if path is None:
            return SourceLookup.miss(self.name, f"not in {self.directory}")
        data = await asyncio.to_thread(path.read_bytes)
        return SourceLookup.hit(
            self.name, LocalBlob(name=path.name, data=data, content_type=guess_content_type(path.name))
        )


# =============================================================================
# Storage
# =============================================================================


class AssetStore:
    """Owner-scoped operations on the image bucket.

    Args:
        db: Supabase ``Client``.
        context: Tenancy state; uploads and removals require a writable view.
        bucket: Storage bucket name.
        chunk_size: Keys per removal request.
    """

    def __init__(
        self,
        db,
        context: SyncContext,
        bucket: str = "model-images",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.db = db
        self.context = context
        self.bucket = bucket
        self.chunk_size = chunk_size

    def _bucket(self):
        return self.db.storage.from_(self.bucket)

    def _require_own_path(self, path: str) -> None:
        caller_id = self.context.require_writable()
        if not path.startswith(f"{caller_id}{PATH_SEPARATOR}"):
            raise ValueError(f"Refusing to modify {path!r} outside the caller's folder")

    async def upload(self, path: str, blob: LocalBlob) -> str:
        self._require_own_path(path)
        options = {
            "content-type": blob.content_type or guess_content_type(blob.name),
            "upsert": "true",
        }

        def _upload():
            return self._bucket().upload(path, blob.data, file_options=options)

        await asyncio.to_thread(_upload)
        logger.info(f"Uploaded {path} ({len(blob.data)} bytes)")
        return path

    async def remove(
        self, paths: Sequence[str], on_chunk: Optional[Callable[[int, int], Any]] = None
    ) -> int:
        """Delete keys in chunks, one request at a time.

        Returns:
            Number of keys submitted for removal.
        """
        keys = list(dict.fromkeys(p for p in paths if p))
        for path in keys:
            self._require_own_path(path)

        removed = 0
        for chunk in chunked(keys, self.chunk_size):
            await asyncio.to_thread(lambda: self._bucket().remove(chunk))
            removed += len(chunk)
            if on_chunk is not None:
                on_chunk(removed, len(keys))
        if removed:
            logger.info(f"Removed {removed} objects from {self.bucket}")
        return removed

    async def list_folder(self, prefix: str) -> List[str]:
        """Full keys of every object below ``prefix``, recursively."""
        keys: List[str] = []
        pending = [prefix.strip(PATH_SEPARATOR)]
        while pending:
            folder = pending.pop(0)
            offset = 0
            while True:
                options = {
                    "limit": LIST_PAGE_SIZE,
                    "offset": offset,
                    "sortBy": {"column": "name", "order": "asc"},
                }
                items = await asyncio.to_thread(lambda: self._bucket().list(folder, options))
                items = items or []
                for item in items:
                    name = item.get("name")
                    if not name:
                        continue
                    key = f"{folder}{PATH_SEPARATOR}{name}" if folder else name
                    # Folders are listed without an object id.
                    if item.get("id") is None:
                        pending.append(key)
                    else:
                        keys.append(key)
                if len(items) < LIST_PAGE_SIZE:
                    break
                offset += LIST_PAGE_SIZE
        return keys

    def public_url(self, path: str) -> str:
        if not path:
            return ""
        return self._bucket().get_public_url(path)

    async def download(self, path: str) -> bytes:
        return await asyncio.to_thread(lambda: self._bucket().download(path))


# =============================================================================
# Resolver
# =============================================================================


class AssetPathResolver:
    """Turn image references into owner-scoped storage keys.

    Args:
        store: Where resolved images are uploaded.
        sources: Ordered fallback chain; the first source that finds the
            name wins.
        event_log_dir: Data dir for the sync event log; ``None`` uses the default.
    """

    def __init__(
        self,
        store: AssetStore,
        sources: Sequence[AssetSource],
        event_log_dir: Optional[Path] = None,
    ):
        self.store = store
        self.sources = list(sources)
        self.event_log_dir = event_log_dir

    @classmethod
    def default_chain(
        cls,
        store: AssetStore,
        assets_dir: Optional[Path] = None,
        local_blobs: Optional[LocalBlobProvider] = None,
        event_log_dir: Optional[Path] = None,
    ) -> "AssetPathResolver":
        """Local-import cache first, then the bundled assets directory."""
        sources: List[AssetSource] = []
        if local_blobs is not None:
            sources.append(LocalBlobSource(local_blobs))
        if assets_dir is not None:
            sources.append(BundledAssetSource(assets_dir))
        return cls(store, sources, event_log_dir=event_log_dir)

    def target_path(self, image_ref: str, owner_id: str) -> str:
        """Key that :meth:`resolve` returns for ``image_ref``, without any I/O."""
        ref = (image_ref or "").strip()
        return ref if is_scoped_path(ref) else scoped_path(owner_id, ref)

    async def resolve(self, image_ref: str, owner_id: str) -> str:
        """Return the scoped key for ``image_ref``, uploading if needed.

        Raises:
            AssetNotFoundError: If no source can supply a bare name.
        """
        ref = (image_ref or "").strip()
        if is_scoped_path(ref):
            return ref
        path = scoped_path(owner_id, ref)

        tried: List[str] = []
        for source in self.sources:
            lookup = await source.lookup(ref)
            if lookup.found and lookup.blob is not None:
                await self.store.upload(path, lookup.blob)
                log_upload(owner_id, path, lookup.source, data_dir=self.event_log_dir)
                logger.debug(f"Resolved {ref} via {lookup.source} -> {path}")
                return path
            tried.append(f"{lookup.source}: {lookup.reason}")

        raise AssetNotFoundError(ref, tried)
