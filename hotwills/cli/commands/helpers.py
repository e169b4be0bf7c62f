"""Shared helper functions for CLI commands."""

import json
from typing import Any

from hotwills.types import ProgressEvent, SyncStage

# Busy text per save stage.
STAGE_LABELS = {
    SyncStage.PREPARE_START: "Preparing entries",
    SyncStage.PREPARE: "Resolving images",
    SyncStage.CLEANUP_SCAN: "Reading current catalog",
    SyncStage.CLEANUP: "Clearing old rows",
    SyncStage.UPSERT: "Writing entries",
    SyncStage.CLEANUP_STORAGE_SCAN: "Scanning image folder",
    SyncStage.CLEANUP_STORAGE: "Removing unused images",
    SyncStage.DONE: "Done",
}


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    print(json.dumps(data, indent=2, default=str, ensure_ascii=False))


def format_progress(event: ProgressEvent) -> str:
    label = STAGE_LABELS.get(event.stage, event.stage.value)
    if event.total:
        label += f" ({event.current or 0}/{event.total})"
    elif event.current:
        label += f" ({event.current})"
    if event.image:
        label += f" {event.image}"
    return label
