"""Live-change notifier.

Subscribes to realtime ``postgres_changes`` on the entries table for the
effective owner's rows. Any event just invokes the refresh callback; the
payload is ignored and the caller re-reads the catalog.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from hotwills.database import OWNER_COLUMN

from .context import SyncContext

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "models-live"


class LiveChangeNotifier:
    """Pure refresh trigger driven by realtime events.

    Args:
        realtime: Async Supabase client (anything with ``channel()`` and
            ``remove_channel()``). ``None`` disables the notifier.
        context: Tenancy state; nothing is subscribed without a caller.
        on_change: Refresh callback, sync or async, called with no arguments.
        table: Entries table name.
        enabled: Feature switch.
    """

    def __init__(
        self,
        realtime,
        context: SyncContext,
        on_change: Callable[[], Any],
        table: str = "models",
        enabled: bool = True,
    ):
        self.realtime = realtime
        self.context = context
        self.on_change = on_change
        self.table = table
        self.enabled = enabled
        self._channel = None
        self._owner_id: Optional[str] = None
        self._pending: set = set()

    @property
    def subscribed_owner(self) -> Optional[str]:
        return self._owner_id if self._channel is not None else None

    def trigger(self, _payload: Any = None) -> None:
        """Run the refresh callback once (realtime events, owner switches)."""
        outcome = self.on_change()
        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def start(self, owner_id: Optional[str] = None) -> bool:
        """Subscribe for ``owner_id`` (default: the effective owner).

        Returns:
            True if a channel is now active.
        """
        await self.stop()
        if not self.enabled or self.realtime is None:
            return False
        if self.context.caller is None:
            logger.debug("Realtime not started: not authenticated")
            return False

        owner_id = owner_id or self.context.effective_owner()
        if not owner_id:
            return False

        channel = self.realtime.channel(f"{CHANNEL_PREFIX}-{owner_id}")
        channel.on_postgres_changes(
            "*",
            schema="public",
            table=self.table,
            filter=f"{OWNER_COLUMN}=eq.{owner_id}",
            callback=self.trigger,
        )
        await channel.subscribe()
        self._channel = channel
        self._owner_id = owner_id
        logger.info(f"Realtime subscribed to {self.table} for owner {owner_id}")
        return True

    async def resubscribe(self, owner_id: Optional[str] = None) -> bool:
        """Follow a change of effective owner."""
        return await self.start(owner_id)

    async def stop(self) -> None:
        if self._channel is None:
            return
        channel, self._channel = self._channel, None
        await self.realtime.remove_channel(channel)
        logger.debug(f"Realtime unsubscribed for owner {self._owner_id}")
        self._owner_id = None
