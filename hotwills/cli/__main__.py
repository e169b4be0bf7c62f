"""
Hotwills CLI - Command-line interface for the catalog cloud sync.

Usage:
    hotwills auth login [--email E] [--password P]
    hotwills auth signup [--email E] [--password P]
    hotwills auth logout
    hotwills auth status
    hotwills owners [--json]
    hotwills view [OWNER | --self]
    hotwills list [--json]
    hotwills save FILE [--images DIR] [--quiet]
    hotwills similar [CODE ...] [--json]
    hotwills compare OWNER
    hotwills url PATH
    hotwills watch
"""

import argparse
import logging
import sys

from pydantic import ValidationError

from hotwills.cli.commands import (
    cmd_auth,
    cmd_compare,
    cmd_list,
    cmd_owners,
    cmd_save,
    cmd_similar,
    cmd_url,
    cmd_view,
    cmd_watch,
)
from hotwills.config import get_data_dir, get_settings
from hotwills.core import CatalogSync
from hotwills.logging_config import setup_hotwills_logging

logger = logging.getLogger(__name__)

CATALOG_COMMANDS = {
    "owners": cmd_owners,
    "view": cmd_view,
    "list": cmd_list,
    "save": cmd_save,
    "similar": cmd_similar,
    "compare": cmd_compare,
    "url": cmd_url,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hotwills",
        description="Sync a die-cast model catalog with the cloud",
    )
    parser.add_argument("--debug", action="store_true", help="Log to console at DEBUG level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # auth
    p_auth = subparsers.add_parser("auth", help="Sign in and out")
    auth_sub = p_auth.add_subparsers(dest="auth_action", required=True)
    auth_login = auth_sub.add_parser("login", help="Sign in with email and password")
    auth_login.add_argument("--email", "-e")
    auth_login.add_argument("--password", "-p")
    auth_signup = auth_sub.add_parser("signup", help="Create an account with email and password")
    auth_signup.add_argument("--email", "-e")
    auth_signup.add_argument("--password", "-p")
    auth_sub.add_parser("logout", help="Sign out and forget the stored session")
    auth_sub.add_parser("status", help="Show sign-in state and auth providers")

    # owners
    p_owners = subparsers.add_parser("owners", help="List catalog owners")
    p_owners.add_argument("--json", "-j", action="store_true")

    # view
    p_view = subparsers.add_parser("view", help="Select whose catalog to view")
    p_view.add_argument("owner", nargs="?", help="Owner id to view (read-only)")
    p_view.add_argument("--self", action="store_true", help="Return to your own catalog")

    # list
    p_list = subparsers.add_parser("list", help="Show the viewed catalog")
    p_list.add_argument("--json", "-j", action="store_true")

    # save
    p_save = subparsers.add_parser("save", help="Replace your cloud catalog with a JSON file")
    p_save.add_argument("file", help="Catalog JSON file")
    p_save.add_argument("--images", "-i", help="Directory with bundled images")
    p_save.add_argument("--quiet", "-q", action="store_true", help="Hide progress")

    # similar
    p_similar = subparsers.add_parser("similar", help="Find other owners' models by code")
    p_similar.add_argument("codes", nargs="*", help="Codes (default: your catalog's codes)")
    p_similar.add_argument("--json", "-j", action="store_true")

    # compare
    p_compare = subparsers.add_parser("compare", help="Compare your catalog with another owner's")
    p_compare.add_argument("owner", help="Owner id")

    # url
    p_url = subparsers.add_parser("url", help="Public URL for a stored image")
    p_url.add_argument("path", help="Scoped image path (OWNER/FILE)")

    # watch
    subparsers.add_parser("watch", help="Follow live changes to the viewed catalog")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"✗ Missing configuration: {e.error_count()} setting(s) invalid")
        print("  Set HOTWILLS_SUPABASE_URL and HOTWILLS_SUPABASE_ANON_KEY")
        sys.exit(1)

    data_dir = get_data_dir(settings)
    setup_hotwills_logging("DEBUG" if args.debug else settings.log_level, data_dir)

    try:
        if args.command == "auth":
            cmd_auth(args, settings, data_dir)
            return
        if args.command == "watch":
            cmd_watch(args, settings)
            return
        sync = CatalogSync.from_settings(settings)
        CATALOG_COMMANDS[args.command](args, sync)
    except (ValueError, TypeError) as e:
        logger.error(f"Input validation error: {e}")
        print(f"✗ {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Command failed: {e}")
        print(f"✗ Command failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
