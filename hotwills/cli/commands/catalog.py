"""Catalog commands for hotwills CLI: list, save, similar, compare, url, watch."""

import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from hotwills.auth import load_credentials
from hotwills.cli.commands.helpers import format_progress, print_json
from hotwills.config import get_data_dir
from hotwills.database import create_realtime_client
from hotwills.importers import JsonImporter, dump_catalog_json
from hotwills.types import ProgressEvent, format_error

if TYPE_CHECKING:
    from hotwills import CatalogSync
    from hotwills.config import Settings


def cmd_list(args, sync: "CatalogSync"):
    """Print the effective owner's catalog."""
    owner = sync.effective_owner()
    if not owner:
        print("✗ Not signed in and no owner selected (run `hotwills auth login`)")
        sys.exit(1)

    try:
        entries = asyncio.run(sync.load_entries(owner))
    except Exception as e:
        print(f"✗ Load failed: {format_error(e)}")
        sys.exit(1)

    if args.json:
        print(dump_catalog_json(entries))
        return

    suffix = " (read-only)" if sync.is_read_only_view() else ""
    print(f"## Catalog of {sync.directory.label_for(owner)}{suffix}")
    if not entries:
        print("No entries.")
        return
    for entry in entries:
        line = f"  {entry.code:<10} {entry.name} ({entry.year})  {entry.image}"
        if entry.link:
            line += f"  <{entry.link}>"
        print(line)
    print(f"\n{len(entries)} entries")


def cmd_save(args, sync: "CatalogSync"):
    """Replace the caller's remote catalog with a JSON file."""
    try:
        entries = JsonImporter(args.file).parse()
    except (FileNotFoundError, ValueError) as e:
        print(f"✗ {e}")
        sys.exit(1)

    if args.images:
        # Command-line directory takes precedence over configured assets_dir.
        from hotwills.sync import BundledAssetSource

        sync.resolver.sources = [
            s for s in sync.resolver.sources if not isinstance(s, BundledAssetSource)
        ] + [BundledAssetSource(Path(args.images))]

    def on_progress(event: ProgressEvent):
        if not args.quiet:
            print(f"  … {format_progress(event)}")

    result = asyncio.run(sync.save(entries, on_progress=on_progress))
    if not result.ok:
        print(f"✗ Cloud save failed: {result.message}")
        sys.exit(1)
    print(f"✓ Saved {result.saved_count} entries (remote count {result.final_count})")


def cmd_similar(args, sync: "CatalogSync"):
    """Show other owners' entries sharing codes with the catalog."""
    codes = args.codes
    if not codes:
        owner = sync.effective_owner()
        if not owner:
            print("✗ Give codes or sign in to use your catalog's codes")
            sys.exit(1)
        codes = [entry.code for entry in asyncio.run(sync.load_entries(owner))]

    result = asyncio.run(sync.lookup_similar(codes))
    if not result.ok:
        print(f"✗ Similarity lookup failed: {format_error(result.error)}")
        sys.exit(1)

    matches = result.value
    if args.json:
        print_json({code: [m.to_dict() for m in items] for code, items in matches.items()})
        return
    if not matches:
        print("No similar models found.")
        return
    for code in sorted(matches):
        print(f"## {code}")
        for match in matches[code]:
            print(f"  {match.label}: {match.name} ({match.year})  {match.image}")


def cmd_url(args, sync: "CatalogSync"):
    """Print the public URL for a stored image."""
    print(sync.public_url(args.path))


def cmd_compare(args, sync: "CatalogSync"):
    """Show codes shared with, and missing from, another owner's catalog."""
    mine_owner = sync.context.caller_id
    if not mine_owner:
        print("✗ Not signed in (run `hotwills auth login`)")
        sys.exit(1)

    result = asyncio.run(sync.compare_with(args.owner))
    if not result.ok:
        print(f"✗ Compare failed: {format_error(result.error)}")
        sys.exit(1)

    mine = {entry.code for entry in asyncio.run(sync.load_entries(mine_owner))}
    theirs = {entry.code for entry in result.value}
    print(f"## Compared with {sync.directory.label_for(args.owner)}")
    print(f"  Shared: {len(mine & theirs)}")
    print(f"  Only yours: {', '.join(sorted(mine - theirs)) or '-'}")
    print(f"  Only theirs: {', '.join(sorted(theirs - mine)) or '-'}")


def cmd_watch(args, settings: "Settings"):
    """Follow live changes to the viewed catalog until interrupted."""
    from hotwills import CatalogSync

    async def _watch():
        realtime = await create_realtime_client(settings)
        credentials = load_credentials(get_data_dir(settings))
        if credentials and credentials.get("access_token"):
            await realtime.auth.set_session(
                credentials["access_token"], credentials.get("refresh_token", "")
            )

        changed = asyncio.Event()
        sync = CatalogSync.from_settings(settings, realtime=realtime, on_change=changed.set)
        if not await sync.start_live_updates():
            print("✗ Live updates unavailable (signed out or disabled)")
            return False

        owner = sync.effective_owner()
        print(f"Watching {sync.directory.label_for(owner)} (Ctrl-C to stop)")
        try:
            while True:
                await changed.wait()
                changed.clear()
                entries = await sync.load_entries()
                print(f"  ↻ {len(entries)} entries")
        finally:
            await sync.close()

    try:
        if asyncio.run(_watch()) is False:
            sys.exit(1)
    except KeyboardInterrupt:
        print("\nStopped")
