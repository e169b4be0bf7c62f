"""Record store client for the catalog entries table.

Thin async wrapper over the Supabase table API. Reads are paged because
PostgREST caps the number of rows returned per request; every page is
awaited before the next one is requested. Errors from the client surface
unchanged and nothing is retried here.
"""

import asyncio
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from hotwills.database import (
    ENTRY_COLUMNS,
    IMAGE_COLUMN,
    IMAGE_REF_COLUMNS,
    OWNER_COLUMN,
    SIMILAR_COLUMNS,
    UPSERT_CONFLICT_TARGET,
)
from hotwills.types import Entry

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000

_LIKE_SPECIAL = re.compile(r"([\\%_])")


def ilike_term(column: str, value: str) -> str:
    """PostgREST ``or`` term matching ``value`` exactly, ignoring case.

    LIKE wildcards are escaped and the value is double-quoted so commas and
    parentheses in codes survive the filter syntax.
    """
    pattern = _LIKE_SPECIAL.sub(r"\\\1", value)
    quoted = pattern.replace("\\", "\\\\").replace('"', '\\"')
    return f'{column}.ilike."{quoted}"'


def entry_to_row(entry: Entry, owner_id: str) -> Dict[str, Any]:
    """Map an entry to an entries-table row (strings trimmed, empty link is NULL)."""
    return {
        "name": (entry.name or "").strip(),
        "year": (entry.year or "").strip(),
        "code": (entry.code or "").strip(),
        IMAGE_COLUMN: (entry.image or "").strip(),
        "source_link": (entry.link or "").strip() or None,
        OWNER_COLUMN: owner_id,
    }


def row_to_entry(row: Dict[str, Any]) -> Entry:
    return Entry(
        name=row.get("name") or "",
        year=row.get("year") or "",
        code=row.get("code") or "",
        image=row.get(IMAGE_COLUMN) or "",
        link=row.get("source_link") or "",
        id=row.get("id"),
        owner=row.get(OWNER_COLUMN),
        updated_at=row.get("updated_at"),
    )


class RecordStoreClient:
    """CRUD and paged reads against the entries table.

    Args:
        db: Supabase ``Client``.
        table: Entries table name.
        page_size: Rows per request; a shorter page ends a paged read.
    """

    def __init__(self, db, table: str = "models", page_size: int = DEFAULT_PAGE_SIZE):
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.db = db
        self.table = table
        self.page_size = page_size

    async def _execute(self, build: Callable[[], Any]):
        """Run a blocking query builder in a worker thread."""

        def _run():
            return build().execute()

        return await asyncio.to_thread(_run)

    async def _paged(
        self,
        build_page: Callable[[int, int], Any],
        on_page: Optional[Callable[[int], Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Collect rows page by page until a short page comes back."""
        rows: List[Dict[str, Any]] = []
        start = 0
        while True:
            end = start + self.page_size - 1
            result = await self._execute(lambda: build_page(start, end))
            page = result.data or []
            rows.extend(page)
            if on_page is not None:
                on_page(len(rows))
            if len(page) < self.page_size:
                return rows
            start += self.page_size

    # === Reads ===

    async def list_entries(self, owner_id: str) -> List[Entry]:
        """All entries of one owner, ordered by code."""
        rows = await self._paged(
            lambda start, end: (
                self.db.table(self.table)
                .select(ENTRY_COLUMNS)
                .eq(OWNER_COLUMN, owner_id)
                .order("code")
                .order("id")
                .range(start, end)
            )
        )
        logger.debug(f"Listed {len(rows)} entries for owner {owner_id}")
        return [row_to_entry(row) for row in rows]

    async def list_image_refs(
        self, owner_id: str, on_page: Optional[Callable[[int], Any]] = None
    ) -> List[Tuple[Any, str]]:
        """Snapshot of ``(id, image_file)`` pairs for one owner."""
        rows = await self._paged(
            lambda start, end: (
                self.db.table(self.table)
                .select(IMAGE_REF_COLUMNS)
                .eq(OWNER_COLUMN, owner_id)
                .order("id")
                .range(start, end)
            ),
            on_page=on_page,
        )
        return [(row.get("id"), row.get(IMAGE_COLUMN) or "") for row in rows]

    async def count_entries(self, owner_id: str) -> int:
        result = await self._execute(
            lambda: (
                self.db.table(self.table)
                .select("id", count="exact", head=True)
                .eq(OWNER_COLUMN, owner_id)
            )
        )
        return result.count or 0

    async def list_owner_ids(self) -> List[str]:
        """Distinct owner ids seen on the entries table."""
        rows = await self._paged(
            lambda start, end: (
                self.db.table(self.table)
                .select(OWNER_COLUMN)
                .order(OWNER_COLUMN)
                .range(start, end)
            )
        )
        seen: Dict[str, None] = {}
        for row in rows:
            owner = row.get(OWNER_COLUMN)
            if owner:
                seen.setdefault(owner, None)
        return list(seen)

    async def find_by_codes(
        self, codes: Sequence[str], exclude_owner_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Rows of other owners whose code equals one of ``codes``, ignoring case."""
        terms = [ilike_term("code", code) for code in dict.fromkeys(codes) if code]
        if not terms:
            return []

        def _build(start: int, end: int):
            query = self.db.table(self.table).select(SIMILAR_COLUMNS).or_(",".join(terms))
            if exclude_owner_id:
                query = query.neq(OWNER_COLUMN, exclude_owner_id)
            return query.order(OWNER_COLUMN).order("code").range(start, end)

        return await self._paged(_build)

    # === Writes ===

    async def delete_all_entries(self, owner_id: str) -> None:
        await self._execute(lambda: self.db.table(self.table).delete().eq(OWNER_COLUMN, owner_id))
        logger.debug(f"Deleted all entries for owner {owner_id}")

    async def upsert_entries(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Upsert rows keyed by ``(owner, image path)``."""
        if not rows:
            return []
        result = await self._execute(
            lambda: self.db.table(self.table).upsert(rows, on_conflict=UPSERT_CONFLICT_TARGET)
        )
        return result.data or []
