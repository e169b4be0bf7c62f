"""Tenancy and session state for the sync engine.

``SyncContext`` answers two questions every other component asks before it
touches the remote store: whose catalog is being looked at, and may it be
written. The viewing selection is persisted in a small JSON key-value file
so it survives restarts; it is re-validated on every read.
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from hotwills.types import (
    CallerIdentity,
    ContextSnapshot,
    NotAuthenticatedError,
    ReadOnlyViewError,
    is_valid_owner_id,
)

logger = logging.getLogger(__name__)

EFFECTIVE_OWNER_KEY = "effective_owner"


class LocalStateCache:
    """JSON-file key-value store for UI selections."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.debug(f"Ignoring unreadable state file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Any:
        return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)


class SyncContext:
    """Authenticated caller plus the effective viewing owner.

    Args:
        cache: Persistent store for the viewing selection. ``None`` keeps the
            selection in memory only.
        caller: The signed-in user, if any.
    """

    def __init__(
        self,
        cache: Optional[LocalStateCache] = None,
        caller: Optional[CallerIdentity] = None,
    ):
        self.cache = cache
        self.caller = caller
        self._memory_selection: Optional[str] = None
        self._listeners: List[Callable[[Optional[str]], Any]] = []

    # === Session ===

    @property
    def caller_id(self) -> Optional[str]:
        return self.caller.id if self.caller else None

    def set_caller(self, caller: Optional[CallerIdentity]) -> None:
        previous = self.effective_owner()
        self.caller = caller
        if self.effective_owner() != previous:
            self._notify()

    def refresh_session(self, client) -> Optional[CallerIdentity]:
        """Read the current auth session from a Supabase client."""
        session = client.auth.get_session()
        user = getattr(session, "user", None) if session else None
        if user is None:
            self.set_caller(None)
        else:
            self.set_caller(CallerIdentity(id=str(user.id), email=getattr(user, "email", None)))
        return self.caller

    # === Viewing owner ===

    def _stored_selection(self) -> Optional[str]:
        if self.cache is None:
            return self._memory_selection
        return self.cache.get(EFFECTIVE_OWNER_KEY)

    def effective_owner(self) -> Optional[str]:
        """Owner whose catalog is being viewed.

        A stored selection that fails the identifier syntax is ignored and
        the caller's own id is used instead.
        """
        stored = self._stored_selection()
        if is_valid_owner_id(stored):
            return stored
        if stored:
            logger.debug(f"Ignoring invalid stored owner selection: {stored!r}")
        return self.caller_id

    def is_read_only_view(self) -> bool:
        if self.caller is None:
            return True
        owner = self.effective_owner()
        return owner is not None and owner != self.caller.id

    def set_effective_owner(self, owner_id: Optional[str]) -> bool:
        """Select whose catalog to view and trigger listeners.

        Passing ``None`` or the caller's own id returns to the caller's
        catalog.

        Returns:
            True if the effective owner changed.

        Raises:
            ValueError: If ``owner_id`` does not match the identifier syntax.
        """
        if owner_id is not None and not is_valid_owner_id(owner_id):
            raise ValueError(f"Invalid owner id: {owner_id!r}")

        previous = self.effective_owner()
        selection = None if owner_id == self.caller_id else owner_id
        if self.cache is None:
            self._memory_selection = selection
        else:
            self.cache.set(EFFECTIVE_OWNER_KEY, selection)

        changed = self.effective_owner() != previous
        self._notify()
        return changed

    # === Guards ===

    def require_writable(self) -> str:
        """Return the caller id, or fail if mutation is not allowed."""
        if self.caller is None:
            raise NotAuthenticatedError()
        if self.is_read_only_view():
            raise ReadOnlyViewError(self.effective_owner())
        return self.caller.id

    def snapshot(self) -> ContextSnapshot:
        return ContextSnapshot(
            caller_id=self.caller_id,
            owner_id=self.effective_owner(),
            read_only=self.is_read_only_view(),
        )

    # === Listeners ===

    def add_listener(self, callback: Callable[[Optional[str]], Any]) -> None:
        """Register a callback invoked with the new effective owner."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[Optional[str]], Any]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self) -> None:
        owner = self.effective_owner()
        for callback in list(self._listeners):
            callback(owner)
