"""JSON importer for catalog files.

Accepts the editor's export format: either a bare array of entries or an
object wrapping the array under ``items`` or ``data``. Each entry carries
``name``, ``year``, ``code``, ``image`` and an optional ``link``.
"""

import json
import logging
from pathlib import Path
from typing import Any, List

from hotwills.types import Entry

logger = logging.getLogger(__name__)


def parse_catalog_json(content: str) -> List[Entry]:
    """Parse catalog JSON text into local entries.

    Raises:
        json.JSONDecodeError: If the text is not valid JSON.
        ValueError: If no entry array can be found.
    """
    data: Any = json.loads(content)
    if isinstance(data, dict):
        data = data.get("items", data.get("data"))
    if not isinstance(data, list):
        raise ValueError("Catalog JSON must be an array or an object with 'items' or 'data'")

    entries = []
    skipped = 0
    for item in data:
        if not isinstance(item, dict):
            skipped += 1
            continue
        entries.append(Entry.from_dict(item))
    if skipped:
        logger.warning(f"Skipped {skipped} non-object items in catalog JSON")
    return entries


class JsonImporter:
    """Read a catalog export file."""

    def __init__(self, file_path: str):
        self.file_path = Path(file_path).expanduser()
        self.entries: List[Entry] = []

    def parse(self) -> List[Entry]:
        """Parse the file.

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        if not self.file_path.exists():
            raise FileNotFoundError(f"File not found: {self.file_path}")
        self.entries = parse_catalog_json(self.file_path.read_text(encoding="utf-8"))
        return self.entries


def dump_catalog_json(entries: List[Entry]) -> str:
    """Serialize entries in the editor's export format."""
    return json.dumps([entry.to_dict() for entry in entries], indent=2, ensure_ascii=False)
