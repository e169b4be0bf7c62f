"""
Shared catalog types for hotwills.

The dataclasses here are the vocabulary between the sync components and
their callers: entries travel from the editor into the reconciliation
engine, progress events travel back out, and every engine operation
answers with one of the result types below.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

# Supabase auth user ids are UUIDs.
OWNER_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)

PATH_SEPARATOR = "/"

REQUIRED_ENTRY_FIELDS = ("name", "year", "code", "image")


def is_valid_owner_id(value: Any) -> bool:
    """Check a value against the owner identifier syntax."""
    return isinstance(value, str) and bool(OWNER_ID_PATTERN.match(value))


def is_scoped_path(image_ref: str) -> bool:
    """A path is scoped when it carries a folder prefix."""
    return PATH_SEPARATOR in (image_ref or "")


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().lower()


# === Enums ===


class SyncStage(str, Enum):
    """Progress stages reported by a save, in emission order."""

    PREPARE_START = "prepare_start"
    PREPARE = "prepare"
    CLEANUP_SCAN = "cleanup_scan"
    CLEANUP = "cleanup"
    UPSERT = "upsert"
    CLEANUP_STORAGE_SCAN = "cleanup_storage_scan"
    CLEANUP_STORAGE = "cleanup_storage"
    DONE = "done"


SAVE_STAGE_ORDER = tuple(SyncStage)


# === Errors ===


class CatalogSyncError(Exception):
    """Base class for failures raised by the sync engine."""


class NotAuthenticatedError(CatalogSyncError):
    """A mutating call was made without a signed-in caller."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class ReadOnlyViewError(CatalogSyncError):
    """A mutating call was made while viewing another owner's catalog."""

    def __init__(self, owner_id: Optional[str] = None):
        self.owner_id = owner_id
        suffix = f" (viewing {owner_id})" if owner_id else ""
        super().__init__(f"Catalog is read-only{suffix}")


class AssetNotFoundError(CatalogSyncError):
    """Every asset source failed for a bare image name."""

    def __init__(self, name: str, tried: Optional[List[str]] = None):
        self.name = name
        self.tried = list(tried or [])
        super().__init__(f"Image not found: {name}")


class DuplicateImageError(CatalogSyncError):
    """Two prepared entries resolved to the same storage path."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Duplicate image in payload: {path}")


class CountMismatchError(CatalogSyncError):
    """Remote row count differs from the submitted set after a save."""

    def __init__(self, expected: int, actual: Optional[int]):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Saved row count mismatch: expected {expected}, found {actual}")


class NoValidEntriesError(CatalogSyncError):
    """Nothing survived validation, so a full replace would wipe the catalog."""

    def __init__(self):
        super().__init__("No valid rows to save")


def format_error(err: Any) -> str:
    """Render an error as a single human-readable line.

    PostgREST and storage errors carry ``message``/``details``/``hint``/``code``
    attributes; plain exceptions fall back to ``str()``.
    """
    if err is None:
        return "unknown error"
    parts = []
    message = getattr(err, "message", None)
    if message:
        parts.append(str(message))
    details = getattr(err, "details", None)
    if details:
        parts.append(str(details))
    hint = getattr(err, "hint", None)
    if hint:
        parts.append(f"hint: {hint}")
    code = getattr(err, "code", None)
    if code:
        parts.append(f"code: {code}")
    return " | ".join(parts) or str(err) or type(err).__name__


# === Records ===


@dataclass
class Entry:
    """One catalog record.

    ``id``, ``owner`` and ``updated_at`` are only set on entries read back
    from the remote store; local entries created by the editor lack them.
    """

    name: str = ""
    year: str = ""
    code: str = ""
    image: str = ""
    link: str = ""
    id: Optional[Any] = None
    owner: Optional[str] = None
    updated_at: Optional[str] = None

    def trimmed(self) -> "Entry":
        """Copy with every string field stripped."""
        return Entry(
            name=(self.name or "").strip(),
            year=(self.year or "").strip(),
            code=(self.code or "").strip(),
            image=(self.image or "").strip(),
            link=(self.link or "").strip(),
            id=self.id,
            owner=self.owner,
            updated_at=self.updated_at,
        )

    def is_complete(self) -> bool:
        return all(getattr(self, name) for name in REQUIRED_ENTRY_FIELDS)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entry":
        """Build an entry from editor/export JSON (``image``/``link`` keys)."""

        def _text(key: str) -> str:
            value = data.get(key)
            return "" if value is None else str(value)

        return cls(
            name=_text("name"),
            year=_text("year"),
            code=_text("code"),
            image=_text("image"),
            link=_text("link"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "year": self.year,
            "code": self.code,
            "image": self.image,
            "link": self.link,
        }


@dataclass(frozen=True)
class CallerIdentity:
    """The authenticated user."""

    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class ContextSnapshot:
    """Tenancy state captured once at the start of an operation."""

    caller_id: Optional[str]
    owner_id: Optional[str]
    read_only: bool


@dataclass(frozen=True)
class OwnerInfo:
    """A known tenant and its display label."""

    id: str
    label: Optional[str] = None

    @property
    def display(self) -> str:
        return self.label or self.id


@dataclass
class ProgressEvent:
    """Payload handed to a save's progress callback."""

    stage: SyncStage
    current: Optional[int] = None
    total: Optional[int] = None
    image: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"stage": self.stage.value}
        if self.current is not None:
            out["current"] = self.current
        if self.total is not None:
            out["total"] = self.total
        if self.image is not None:
            out["image"] = self.image
        return out


ProgressCallback = Callable[[ProgressEvent], Any]


@dataclass
class SaveResult:
    """Outcome of a full-replace save."""

    ok: bool
    saved_count: int = 0
    final_count: int = 0
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, saved_count: int, final_count: int) -> "SaveResult":
        return cls(ok=True, saved_count=saved_count, final_count=final_count)

    @classmethod
    def failure(cls, error: BaseException) -> "SaveResult":
        return cls(ok=False, error=error)

    @property
    def message(self) -> str:
        if self.ok:
            return f"Saved {self.saved_count} entries"
        return format_error(self.error)


@dataclass(frozen=True)
class SimilarMatch:
    """Another owner's entry sharing a code with the caller's catalog."""

    owner: str
    label: str
    name: str
    year: str
    image: str
    link: str = ""
    code: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "label": self.label,
            "name": self.name,
            "year": self.year,
            "image": self.image,
            "link": self.link,
        }


@dataclass
class OwnerListing:
    """Result of an owner directory refresh.

    ``stale`` is set when the refresh failed and ``owners`` is the last
    successful listing; ``status`` then carries the failure text.
    """

    owners: List[OwnerInfo] = field(default_factory=list)
    status: Optional[str] = None
    stale: bool = False


@dataclass
class LookupResult:
    """Discriminated result for guarded lookups (similarity, comparison)."""

    ok: bool
    value: Any = None
    error: Optional[BaseException] = None
    stale: bool = False

    @property
    def applied(self) -> bool:
        return self.ok and not self.stale
