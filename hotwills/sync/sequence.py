"""Discard-if-superseded guard for overlapping async lookups."""

import logging
from typing import Any, Awaitable

from hotwills.types import LookupResult

logger = logging.getLogger(__name__)


class SequenceGuard:
    """Monotonic token counter for one kind of lookup.

    Each lookup takes a token when it starts. When it finishes, its result
    only counts if no newer token has been issued in the meantime. In-flight
    calls are never aborted; superseded results are just flagged stale.
    """

    def __init__(self, name: str = "lookup"):
        self.name = name
        self._latest = 0

    @property
    def latest(self) -> int:
        return self._latest

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, token: int) -> bool:
        return token == self._latest

    async def run(self, awaitable: Awaitable[Any]) -> LookupResult:
        """Await ``awaitable`` under a fresh token.

        Errors are captured in the result rather than raised, so a stale
        failure is dropped as quietly as a stale success.
        """
        token = self.issue()
        try:
            value = await awaitable
        except Exception as e:
            stale = not self.is_current(token)
            if not stale:
                logger.warning(f"{self.name} failed: {e}")
            return LookupResult(ok=False, error=e, stale=stale)

        stale = not self.is_current(token)
        if stale:
            logger.debug(f"Discarding stale {self.name} result (token {token} < {self._latest})")
        return LookupResult(ok=True, value=value, stale=stale)
