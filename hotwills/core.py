"""CatalogSync: main interface for catalog cloud operations.

Wires the sync components around one :class:`SyncContext` and exposes the
operations the presentation layer calls: load an owner's entries, save the
editor's list, browse other owners, look up similar models and follow
live changes.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional

from hotwills.auth import load_credentials
from hotwills.config import Settings, get_data_dir, get_settings
from hotwills.database import get_supabase_client, restore_session
from hotwills.sync import (
    AssetPathResolver,
    AssetStore,
    LiveChangeNotifier,
    LocalBlobProvider,
    LocalStateCache,
    OwnerDirectory,
    ProfileDirectory,
    ReconciliationEngine,
    RecordStoreClient,
    SequenceGuard,
    SimilarityIndex,
    SyncContext,
)
from hotwills.types import (
    Entry,
    LookupResult,
    NotAuthenticatedError,
    OwnerListing,
    ProgressCallback,
    SaveResult,
)

logger = logging.getLogger(__name__)

STATE_FILE = "state.json"


class CatalogSync:
    """Catalog sync engine for one client session.

    Args:
        db: Supabase ``Client``.
        context: Tenancy state shared by every component.
        settings: Remote layout, limits and local directories.
        local_blobs: Optional local-import cache consulted first when
            resolving bare image names.
        realtime: Optional async Supabase client for live-change events.
        on_change: Refresh callback for live changes and owner switches.

    Examples:
        sync = CatalogSync.from_settings()
        entries = await sync.load_entries()
        result = await sync.save(entries, on_progress=print)
    """

    def __init__(
        self,
        db,
        context: SyncContext,
        settings: Settings,
        local_blobs: Optional[LocalBlobProvider] = None,
        realtime=None,
        on_change: Optional[Callable[[], Any]] = None,
    ):
        self.db = db
        self.context = context
        self.settings = settings
        self.data_dir = get_data_dir(settings)

        self.records = RecordStoreClient(
            db, table=settings.entries_table, page_size=settings.page_size
        )
        self.assets = AssetStore(
            db, context, bucket=settings.image_bucket, chunk_size=settings.storage_chunk_size
        )
        self.resolver = AssetPathResolver.default_chain(
            self.assets,
            assets_dir=Path(settings.assets_dir),
            local_blobs=local_blobs,
            event_log_dir=self.data_dir,
        )
        self.engine = ReconciliationEngine(
            context, self.records, self.assets, self.resolver, event_log_dir=self.data_dir
        )
        self.profiles = ProfileDirectory(
            db,
            table=settings.profiles_table,
            chunk_size=settings.profile_chunk_size,
            page_size=settings.page_size,
        )
        self.directory = OwnerDirectory(
            context, self.profiles, self.records, timeout=settings.owner_directory_timeout
        )
        self.similarity = SimilarityIndex(
            self.records, self.profiles, code_chunk_size=settings.code_chunk_size
        )
        self.notifier = LiveChangeNotifier(
            realtime,
            context,
            on_change=on_change or (lambda: None),
            table=settings.entries_table,
            enabled=settings.realtime_enabled,
        )
        self._similar_guard = SequenceGuard("similarity lookup")
        self._compare_guard = SequenceGuard("owner comparison")
        if on_change is not None:
            context.add_listener(lambda _owner: self.notifier.trigger())

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        local_blobs: Optional[LocalBlobProvider] = None,
        realtime=None,
        on_change: Optional[Callable[[], Any]] = None,
    ) -> "CatalogSync":
        """Build from environment settings, restoring any stored session."""
        if settings is None:
            settings = get_settings()
        data_dir = get_data_dir(settings)
        db = get_supabase_client(settings)
        context = SyncContext(cache=LocalStateCache(data_dir / STATE_FILE))
        if restore_session(db, load_credentials(data_dir)):
            context.refresh_session(db)
        return cls(
            db,
            context,
            settings,
            local_blobs=local_blobs,
            realtime=realtime,
            on_change=on_change,
        )

    # === Tenancy ===

    def effective_owner(self) -> Optional[str]:
        return self.context.effective_owner()

    def is_read_only_view(self) -> bool:
        return self.context.is_read_only_view()

    async def set_viewing_owner(self, owner_id: Optional[str]) -> bool:
        """Switch the viewed catalog and refresh.

        The refresh callback runs through the context listener; live changes
        are re-subscribed when the owner actually changed.

        Raises:
            ValueError: If ``owner_id`` is not a valid owner identifier.
        """
        changed = self.context.set_effective_owner(owner_id)
        if changed and self.notifier.subscribed_owner is not None:
            await self.notifier.resubscribe()
        return changed

    # === Catalog ===

    async def load_entries(self, owner_id: Optional[str] = None) -> List[Entry]:
        """Entries of ``owner_id`` (default: the effective owner).

        Raises:
            NotAuthenticatedError: If there is no owner to load.
        """
        owner_id = owner_id or self.context.effective_owner()
        if not owner_id:
            raise NotAuthenticatedError("No owner selected and not authenticated")
        return await self.records.list_entries(owner_id)

    async def save(
        self, entries: Iterable[Entry], on_progress: Optional[ProgressCallback] = None
    ) -> SaveResult:
        return await self.engine.save(entries, on_progress)

    def public_url(self, path: str) -> str:
        return self.assets.public_url(path)

    # === Other owners ===

    async def list_owners(self) -> OwnerListing:
        return await self.directory.list_owners()

    async def lookup_similar(self, codes: Iterable[Optional[str]]) -> LookupResult:
        """Similar models for ``codes`` from every owner but the viewed one.

        Overlapping calls are sequence-guarded: only the latest result
        comes back with ``stale=False``.
        """
        return await self._similar_guard.run(
            self.similarity.find_similar(list(codes), self.context.effective_owner())
        )

    async def compare_with(self, owner_id: str) -> LookupResult:
        """Another owner's entries for side-by-side comparison (sequence-guarded)."""
        return await self._compare_guard.run(self.records.list_entries(owner_id))

    # === Live changes ===

    async def start_live_updates(self) -> bool:
        return await self.notifier.start()

    async def close(self) -> None:
        await self.notifier.stop()
