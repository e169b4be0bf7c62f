"""Full-replace save of an owner's catalog.

``ReconciliationEngine.save`` makes the remote store match the submitted
entry list exactly:

1. drop incomplete entries and trim fields
2. reject payloads where two entries would share a key
3. resolve every image to a scoped key, one entry at a time
4. snapshot the owner's current ``(id, image)`` rows
5. delete the owner's rows, then upsert the prepared set
6. remove blobs no longer referenced (stale rows, then a folder sweep)
7. re-count rows and fail on a mismatch

The remote side is not transactional. Between step 5's delete and upsert a
concurrent reader sees an empty catalog; a failure after step 5 leaves
whatever was written. The caller still gets a single success/failure.
"""

import asyncio
import inspect
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

from hotwills.logging_config import log_cleanup, log_save
from hotwills.types import (
    PATH_SEPARATOR,
    CountMismatchError,
    DuplicateImageError,
    Entry,
    NoValidEntriesError,
    NotAuthenticatedError,
    ProgressCallback,
    ProgressEvent,
    ReadOnlyViewError,
    SaveResult,
    SyncStage,
    format_error,
)

from .assets import AssetPathResolver, AssetStore
from .context import SyncContext
from .records import RecordStoreClient, entry_to_row

logger = logging.getLogger(__name__)


def prepare_entries(entries: Iterable[Entry]) -> List[Entry]:
    """Trim every entry and keep only those with name, year, code and image."""
    prepared = []
    for entry in entries or []:
        trimmed = entry.trimmed()
        if trimmed.is_complete():
            prepared.append(trimmed)
    return prepared


def find_duplicate_image(paths: Iterable[str]) -> Optional[str]:
    seen: Set[str] = set()
    for path in paths:
        if path in seen:
            return path
        seen.add(path)
    return None


class ReconciliationEngine:
    """Replace an owner's remote rows and assets with a submitted list.

    Args:
        context: Tenancy state; the save is refused in a read-only view.
        records: Entries table client.
        assets: Image bucket client.
        resolver: Maps bare image names to scoped keys.
        event_log_dir: Data dir for the sync event log; ``None`` uses the default.
    """

    def __init__(
        self,
        context: SyncContext,
        records: RecordStoreClient,
        assets: AssetStore,
        resolver: AssetPathResolver,
        event_log_dir: Optional[Path] = None,
    ):
        self.context = context
        self.records = records
        self.assets = assets
        self.resolver = resolver
        self.event_log_dir = event_log_dir
        self._observers: Set[asyncio.Future] = set()

    def _report(self, on_progress: Optional[ProgressCallback], event: ProgressEvent) -> None:
        """Deliver one progress event; observer errors are logged, never raised."""
        if on_progress is None:
            return
        try:
            outcome = on_progress(event)
        except Exception as e:
            logger.warning(f"Progress callback failed at {event.stage.value}: {e}")
            return
        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._observers.add(task)
            task.add_done_callback(self._observer_done)

    def _observer_done(self, task: asyncio.Future) -> None:
        self._observers.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Async progress callback failed: {task.exception()}")

    async def save(
        self, entries: Iterable[Entry], on_progress: Optional[ProgressCallback] = None
    ) -> SaveResult:
        """Make the caller's remote catalog equal ``entries``.

        Never raises: every failure, including remote API errors, comes back
        as ``SaveResult(ok=False, error=...)``.
        """
        snapshot = self.context.snapshot()
        try:
            owner_id = self.context.require_writable()
        except (NotAuthenticatedError, ReadOnlyViewError) as e:
            logger.info(f"Save refused: {e}")
            return SaveResult.failure(e)

        try:
            final_count, saved = await self._save(owner_id, entries, on_progress)
        except Exception as e:
            logger.error(f"Save failed for owner {owner_id}: {format_error(e)}")
            log_save(owner_id, 0, None, ok=False, error=format_error(e), data_dir=self.event_log_dir)
            return SaveResult.failure(e)

        log_save(owner_id, saved, final_count, ok=True, data_dir=self.event_log_dir)
        logger.info(
            f"Saved {saved} entries for owner {snapshot.caller_id} (remote count {final_count})"
        )
        return SaveResult.success(saved_count=saved, final_count=final_count)

    async def _save(
        self, owner_id: str, entries: Iterable[Entry], on_progress: Optional[ProgressCallback]
    ) -> tuple:
        def report(stage: SyncStage, **kwargs) -> None:
            self._report(on_progress, ProgressEvent(stage=stage, **kwargs))

        # 1. Filter & validate
        candidates = prepare_entries(entries)
        total = len(candidates)
        report(SyncStage.PREPARE_START, current=0, total=total)
        if not candidates:
            raise NoValidEntriesError()

        # 2. Reject duplicates before any upload or row change.
        duplicate = find_duplicate_image(
            self.resolver.target_path(entry.image, owner_id) for entry in candidates
        )
        if duplicate is not None:
            raise DuplicateImageError(duplicate)

        # 3. Resolve assets, strictly sequential; first failure aborts.
        prepared: List[Entry] = []
        for index, entry in enumerate(candidates, start=1):
            report(SyncStage.PREPARE, current=index, total=total, image=entry.image)
            path = await self.resolver.resolve(entry.image, owner_id)
            prepared.append(
                Entry(
                    name=entry.name,
                    year=entry.year,
                    code=entry.code,
                    image=path,
                    link=entry.link,
                    owner=owner_id,
                )
            )

        rows: List[Dict[str, Any]] = [entry_to_row(entry, owner_id) for entry in prepared]
        keep = {entry.image for entry in prepared}

        # 4. Snapshot existing remote state.
        report(SyncStage.CLEANUP_SCAN, current=0)
        existing = await self.records.list_image_refs(
            owner_id, on_page=lambda n: report(SyncStage.CLEANUP_SCAN, current=n)
        )

        # 5. Delete-then-upsert.
        report(SyncStage.CLEANUP, current=0, total=len(existing))
        await self.records.delete_all_entries(owner_id)
        report(SyncStage.CLEANUP, current=len(existing), total=len(existing))

        report(SyncStage.UPSERT, current=0, total=len(rows))
        await self.records.upsert_entries(rows)
        report(SyncStage.UPSERT, current=len(rows), total=len(rows))

        # 6. Orphaned assets: stale rows first, then the whole folder.
        owner_prefix = f"{owner_id}{PATH_SEPARATOR}"
        stale = [
            image
            for _, image in existing
            if image and image not in keep and image.startswith(owner_prefix)
        ]
        report(SyncStage.CLEANUP_STORAGE_SCAN, current=0)
        stored = await self.assets.list_folder(owner_id)
        report(SyncStage.CLEANUP_STORAGE_SCAN, current=len(stored))
        orphans = [key for key in stored if key not in keep]
        to_remove = list(dict.fromkeys(stale + orphans))

        report(SyncStage.CLEANUP_STORAGE, current=0, total=len(to_remove))
        removed = await self.assets.remove(
            to_remove,
            on_chunk=lambda done, count: report(
                SyncStage.CLEANUP_STORAGE, current=done, total=count
            ),
        )
        if removed:
            log_cleanup(owner_id, removed, data_dir=self.event_log_dir)

        # 7. Verify.
        final_count = await self.records.count_entries(owner_id)
        if final_count != len(rows):
            raise CountMismatchError(expected=len(rows), actual=final_count)

        report(SyncStage.DONE, current=final_count, total=len(rows))
        return final_count, len(rows)
