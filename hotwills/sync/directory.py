"""Owner directory: who has a catalog, and what to call them.

Labels come from the ``profiles`` table (``user_id`` → ``email``). When the
profiles table is empty the directory falls back to the distinct owners seen
on the entries table. Remote calls are bounded by a timeout and a failed
refresh keeps the last good listing, so a flaky connection never empties the
owner picker.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from hotwills.database import PROFILE_COLUMNS
from hotwills.types import OwnerInfo, OwnerListing, format_error, is_valid_owner_id
from hotwills.utils import chunked

from .context import SyncContext
from .records import RecordStoreClient

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 7.0


class ProfileDirectory:
    """Reads owner labels from the profiles table and caches them."""

    def __init__(self, db, table: str = "profiles", chunk_size: int = 100, page_size: int = 1000):
        self.db = db
        self.table = table
        self.chunk_size = chunk_size
        self.page_size = page_size
        self._labels: Dict[str, str] = {}

    def cached_label(self, owner_id: str) -> Optional[str]:
        return self._labels.get(owner_id)

    def remember(self, owner_id: str, label: Optional[str]) -> None:
        if owner_id and label:
            self._labels[owner_id] = label

    async def list_profiles(self) -> List[OwnerInfo]:
        """Every profile row, paged."""
        profiles: List[OwnerInfo] = []
        start = 0
        while True:
            end = start + self.page_size - 1

            def _query():
                return (
                    self.db.table(self.table)
                    .select(PROFILE_COLUMNS)
                    .order("user_id")
                    .range(start, end)
                    .execute()
                )

            result = await asyncio.to_thread(_query)
            page = result.data or []
            for row in page:
                owner_id = row.get("user_id")
                if not owner_id:
                    continue
                self.remember(owner_id, row.get("email"))
                profiles.append(OwnerInfo(id=owner_id, label=row.get("email")))
            if len(page) < self.page_size:
                return profiles
            start += self.page_size

    async def labels_for(self, owner_ids: Iterable[str]) -> Dict[str, str]:
        """Labels for ``owner_ids``, fetching unknown ones in chunks."""
        wanted = list(dict.fromkeys(i for i in owner_ids if i))
        missing = [i for i in wanted if i not in self._labels]
        for chunk in chunked(missing, self.chunk_size):

            def _query():
                return (
                    self.db.table(self.table)
                    .select(PROFILE_COLUMNS)
                    .in_("user_id", chunk)
                    .execute()
                )

            result = await asyncio.to_thread(_query)
            for row in result.data or []:
                self.remember(row.get("user_id"), row.get("email"))
        return {i: self._labels[i] for i in wanted if i in self._labels}


class OwnerDirectory:
    """Known tenants for the viewing/comparison picker.

    Args:
        context: Supplies the caller, who is always listed first.
        profiles: Label source.
        records: Fallback source of owner ids.
        timeout: Seconds allowed per remote call.
    """

    def __init__(
        self,
        context: SyncContext,
        profiles: ProfileDirectory,
        records: RecordStoreClient,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.context = context
        self.profiles = profiles
        self.records = records
        self.timeout = timeout
        self._last_good: List[OwnerInfo] = []

    async def _fetch(self) -> List[OwnerInfo]:
        owners = await asyncio.wait_for(self.profiles.list_profiles(), self.timeout)
        if owners:
            return owners
        logger.debug("Profiles table empty, falling back to entry owners")
        owner_ids = await asyncio.wait_for(self.records.list_owner_ids(), self.timeout)
        return [OwnerInfo(id=i, label=self.profiles.cached_label(i)) for i in owner_ids]

    def _arrange(self, owners: List[OwnerInfo]) -> List[OwnerInfo]:
        caller = self.context.caller
        by_id: Dict[str, OwnerInfo] = {}
        for owner in owners:
            if is_valid_owner_id(owner.id) and owner.id not in by_id:
                by_id[owner.id] = owner

        others = sorted(
            (o for o in by_id.values() if caller is None or o.id != caller.id),
            key=lambda o: ((o.label or o.id).lower(), o.id),
        )
        if caller is None:
            return others
        own = by_id.get(caller.id)
        label = (own.label if own else None) or caller.email
        return [OwnerInfo(id=caller.id, label=label)] + others

    async def list_owners(self) -> OwnerListing:
        """Refresh the listing. Never raises."""
        try:
            owners = await self._fetch()
        except asyncio.TimeoutError:
            logger.warning(f"Owner directory timed out after {self.timeout}s, keeping last listing")
            return OwnerListing(
                owners=self._arrange(self._last_good),
                status=f"Owner list timed out after {self.timeout:g}s",
                stale=True,
            )
        except Exception as e:
            logger.warning(f"Owner directory refresh failed, keeping last listing: {e}")
            return OwnerListing(
                owners=self._arrange(self._last_good),
                status=f"Owner list unavailable: {format_error(e)}",
                stale=True,
            )

        self._last_good = owners
        return OwnerListing(owners=self._arrange(owners))

    def label_for(self, owner_id: str) -> str:
        """Best known label for ``owner_id`` (the id itself if none)."""
        caller = self.context.caller
        if caller is not None and caller.id == owner_id and caller.email:
            return self.profiles.cached_label(owner_id) or caller.email
        return self.profiles.cached_label(owner_id) or owner_id
