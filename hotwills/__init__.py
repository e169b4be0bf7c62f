"""
hotwills - Cloud sync engine for a personal toy-model catalog.

Keeps a locally edited catalog and its images in step with a Supabase
project, per owner.
"""

from importlib.metadata import PackageNotFoundError, version

from .core import CatalogSync
from .types import Entry, SaveResult

try:
    __version__ = version("hotwills")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["CatalogSync", "Entry", "SaveResult"]
