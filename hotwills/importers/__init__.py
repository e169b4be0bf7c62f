"""Catalog file importers."""

from .json_importer import JsonImporter, dump_catalog_json, parse_catalog_json

__all__ = ["JsonImporter", "dump_catalog_json", "parse_catalog_json"]
