"""Small shared helpers."""

import os
from pathlib import Path
from typing import Iterator, List, Sequence, TypeVar

T = TypeVar("T")


def get_hotwills_home() -> Path:
    """Local state directory (``HOTWILLS_DATA_DIR`` or ``~/.hotwills``)."""
    override = os.environ.get("HOTWILLS_DATA_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".hotwills"


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])
