"""Authentication commands for hotwills CLI."""

import getpass
import logging
import sys
from typing import TYPE_CHECKING

import httpx

from hotwills.auth import (
    caller_from_credentials,
    clear_credentials,
    fetch_auth_settings,
    google_sign_in_enabled,
    load_credentials,
    save_credentials,
    sign_in,
    sign_out,
    sign_up,
)
from hotwills.database import get_supabase_client, reset_supabase_client
from hotwills.types import format_error

if TYPE_CHECKING:
    from hotwills.config import Settings

logger = logging.getLogger(__name__)


def _prompt_email_password(args):
    email = args.email or input("Email: ").strip()
    password = args.password or getpass.getpass("Password: ")
    if not email or not password:
        print("✗ Email and password are required")
        sys.exit(1)
    return email, password


def cmd_auth(args, settings: "Settings", data_dir):
    """Handle auth subcommands."""
    if args.auth_action == "login":
        email, password = _prompt_email_password(args)
        client = get_supabase_client(settings)
        try:
            credentials = sign_in(client, email, password)
        except Exception as e:
            print(f"✗ Sign in failed: {format_error(e)}")
            sys.exit(1)
        path = save_credentials(credentials, data_dir)
        print(f"✓ Signed in as {credentials.get('email') or credentials['user_id']}")
        print(f"  Session stored in {path}")

    elif args.auth_action == "signup":
        email, password = _prompt_email_password(args)
        try:
            result = sign_up(get_supabase_client(settings), email, password)
        except Exception as e:
            print(f"✗ Sign up failed: {format_error(e)}")
            sys.exit(1)
        if result.confirmation_pending:
            print(f"✓ Account created for {result.email or email}")
            print("  Check your email to confirm it, then run `hotwills auth login`")
            return
        path = save_credentials(result.credentials, data_dir)
        print(f"✓ Signed up and signed in as {result.email or result.user_id}")
        print(f"  Session stored in {path}")

    elif args.auth_action == "logout":
        credentials = load_credentials(data_dir)
        if credentials:
            try:
                sign_out(get_supabase_client(settings))
            except Exception as e:
                logger.debug(f"Remote sign-out failed: {e}")
        reset_supabase_client()
        if clear_credentials(data_dir):
            print("✓ Signed out")
        else:
            print("Not signed in")

    elif args.auth_action == "status":
        caller = caller_from_credentials(load_credentials(data_dir))
        if caller is not None:
            print(f"Signed in as {caller.email or '?'} ({caller.id})")
        else:
            print("Not signed in")
        try:
            auth_settings = fetch_auth_settings(settings)
        except httpx.HTTPError as e:
            print(f"  Auth providers: unavailable ({e})")
            return
        google = "enabled" if google_sign_in_enabled(auth_settings) else "disabled"
        print(f"  Google sign-in: {google}")
