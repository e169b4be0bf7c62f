"""Catalog cloud synchronization components.

Each component takes its collaborators explicitly; ``hotwills.core.CatalogSync``
wires them together around one ``SyncContext``.
"""

from .assets import (
    AssetPathResolver,
    AssetSource,
    AssetStore,
    BundledAssetSource,
    LocalBlob,
    LocalBlobProvider,
    LocalBlobSource,
    SourceLookup,
    sanitize_file_name,
    scoped_path,
)
from .context import LocalStateCache, SyncContext
from .directory import OwnerDirectory, ProfileDirectory
from .notifier import LiveChangeNotifier
from .reconcile import ReconciliationEngine, prepare_entries
from .records import RecordStoreClient, entry_to_row, row_to_entry
from .sequence import SequenceGuard
from .similarity import SimilarityIndex

__all__ = [
    "AssetPathResolver",
    "AssetSource",
    "AssetStore",
    "BundledAssetSource",
    "LiveChangeNotifier",
    "LocalBlob",
    "LocalBlobProvider",
    "LocalBlobSource",
    "LocalStateCache",
    "OwnerDirectory",
    "ProfileDirectory",
    "ReconciliationEngine",
    "RecordStoreClient",
    "SequenceGuard",
    "SimilarityIndex",
    "SourceLookup",
    "SyncContext",
    "entry_to_row",
    "prepare_entries",
    "row_to_entry",
    "sanitize_file_name",
    "scoped_path",
]
