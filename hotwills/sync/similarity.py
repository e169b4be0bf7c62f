"""Cross-tenant "similar model" index.

Given the codes in the caller's catalog, find other owners' entries that
share a code. Codes compare trimmed and case-insensitively: the server
matches with ``ilike`` and each row is re-checked against the normalized
code. Each other owner appears at most once per code; when an owner has
several entries under one code their names and years are merged for
display.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from hotwills.database import IMAGE_COLUMN, OWNER_COLUMN
from hotwills.types import SimilarMatch, normalize_code
from hotwills.utils import chunked

from .directory import ProfileDirectory
from .records import RecordStoreClient

logger = logging.getLogger(__name__)

VARIANT_SEPARATOR = " / "


def _append_unique(values: List[str], value: str) -> None:
    if value and value not in values:
        values.append(value)


class _Group:
    """Rows of one owner under one code."""

    def __init__(self, owner: str, code: str):
        self.owner = owner
        self.code = code
        self.names: List[str] = []
        self.years: List[str] = []
        self.image = ""
        self.link = ""

    def add(self, row: Dict[str, Any]) -> None:
        _append_unique(self.names, (row.get("name") or "").strip())
        _append_unique(self.years, (row.get("year") or "").strip())
        if not self.image:
            self.image = row.get(IMAGE_COLUMN) or ""
        if not self.link:
            self.link = row.get("source_link") or ""

    def to_match(self, label: str) -> SimilarMatch:
        return SimilarMatch(
            owner=self.owner,
            label=label,
            name=VARIANT_SEPARATOR.join(self.names),
            year=VARIANT_SEPARATOR.join(self.years),
            image=self.image,
            link=self.link,
            code=self.code,
        )


class SimilarityIndex:
    """Look up other owners' entries by code.

    Args:
        records: Entries table client.
        profiles: Owner label source.
        code_chunk_size: Normalized codes per query (keeps URLs short).
    """

    def __init__(
        self,
        records: RecordStoreClient,
        profiles: ProfileDirectory,
        code_chunk_size: int = 50,
    ):
        self.records = records
        self.profiles = profiles
        self.code_chunk_size = code_chunk_size

    async def find_similar(
        self, codes: Iterable[Optional[str]], exclude_owner_id: Optional[str]
    ) -> Dict[str, List[SimilarMatch]]:
        """Map each normalized code to other owners' matching entries.

        Raises remote errors unchanged; wrap in a ``SequenceGuard`` for UI use.
        """
        wanted = list(dict.fromkeys(filter(None, (normalize_code(code) for code in codes or []))))
        if not wanted:
            return {}

        groups: Dict[Tuple[str, str], _Group] = {}
        for chunk in chunked(wanted, self.code_chunk_size):
            rows = await self.records.find_by_codes(chunk, exclude_owner_id=exclude_owner_id)
            chunk_codes = set(chunk)
            for row in rows:
                owner = row.get(OWNER_COLUMN)
                code = normalize_code(row.get("code"))
                if not owner or owner == exclude_owner_id or code not in chunk_codes:
                    continue
                group = groups.get((owner, code))
                if group is None:
                    group = groups[(owner, code)] = _Group(owner, code)
                group.add(row)

        labels = await self.profiles.labels_for(owner for owner, _ in groups)

        result: Dict[str, List[SimilarMatch]] = {}
        for (owner, code), group in groups.items():
            result.setdefault(code, []).append(group.to_match(labels.get(owner) or owner))
        for matches in result.values():
            matches.sort(key=lambda m: (m.label.lower(), m.name.lower(), m.code, m.owner))

        logger.debug(
            f"Similarity lookup: {len(wanted)} codes, {sum(len(v) for v in result.values())} matches"
        )
        return result
