"""Owner commands for hotwills CLI: owners, view."""

import asyncio
import sys
from typing import TYPE_CHECKING

from hotwills.cli.commands.helpers import print_json

if TYPE_CHECKING:
    from hotwills import CatalogSync


def cmd_owners(args, sync: "CatalogSync"):
    """List known catalog owners."""
    listing = asyncio.run(sync.list_owners())
    current = sync.effective_owner()

    if args.json:
        print_json(
            {
                "owners": [{"id": o.id, "label": o.label} for o in listing.owners],
                "viewing": current,
                "status": listing.status,
            }
        )
        return

    if listing.status:
        print(f"⚠ {listing.status}")
    if not listing.owners:
        print("No owners found.")
        return
    for owner in listing.owners:
        marker = "*" if owner.id == current else " "
        you = " (you)" if owner.id == sync.context.caller_id else ""
        print(f" {marker} {owner.display}{you}  {owner.id}")


def cmd_view(args, sync: "CatalogSync"):
    """Select whose catalog to view (another owner's is read-only)."""
    target = None if args.self else args.owner
    if not args.self and not target:
        print(f"Viewing: {sync.effective_owner() or 'nobody'}")
        print(f"Read-only: {sync.is_read_only_view()}")
        return
    try:
        asyncio.run(sync.set_viewing_owner(target))
    except ValueError as e:
        print(f"✗ {e}")
        sys.exit(1)
    owner = sync.effective_owner()
    if sync.is_read_only_view():
        print(f"✓ Viewing {owner} (read-only)")
    else:
        print("✓ Viewing your own catalog")
