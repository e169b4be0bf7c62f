"""CLI command modules for hotwills.

Each module contains related command handlers used by __main__.py.
"""

from hotwills.cli.commands.auth import cmd_auth
from hotwills.cli.commands.catalog import (
    cmd_compare,
    cmd_list,
    cmd_save,
    cmd_similar,
    cmd_url,
    cmd_watch,
)
from hotwills.cli.commands.owners import cmd_owners, cmd_view

__all__ = [
    "cmd_auth",
    "cmd_compare",
    "cmd_list",
    "cmd_owners",
    "cmd_save",
    "cmd_similar",
    "cmd_url",
    "cmd_view",
    "cmd_watch",
]
