"""Tests for the catalog JSON importer."""

import json

import pytest

from hotwills.importers import JsonImporter, dump_catalog_json, parse_catalog_json
from hotwills.types import Entry


class TestParse:
    def test_bare_array(self):
        entries = parse_catalog_json(
            json.dumps([{"name": "Beetle", "year": "1967", "code": "K02", "image": "b.jpg"}])
        )
        assert entries == [Entry(name="Beetle", year="1967", code="K02", image="b.jpg")]

    @pytest.mark.parametrize("key", ["items", "data"])
    def test_wrapped_array(self, key):
        entries = parse_catalog_json(json.dumps({key: [{"name": "Beetle"}]}))
        assert [e.name for e in entries] == ["Beetle"]

    def test_non_objects_skipped(self):
        entries = parse_catalog_json(json.dumps([{"name": "A"}, "junk", 3]))
        assert [e.name for e in entries] == ["A"]

    def test_incomplete_entries_kept_for_the_engine_to_filter(self):
        entries = parse_catalog_json(json.dumps([{"name": "No image"}]))
        assert len(entries) == 1
        assert not entries[0].is_complete()

    def test_wrong_shape(self):
        with pytest.raises(ValueError):
            parse_catalog_json(json.dumps({"models": []}))

    def test_invalid_json(self):
        with pytest.raises(json.JSONDecodeError):
            parse_catalog_json("[{")


class TestJsonImporter:
    def test_reads_file(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps([{"name": "Käfer", "year": 1968, "code": "K03", "image": "k.jpg"}]))

        entries = JsonImporter(str(path)).parse()

        assert entries[0].name == "Käfer"
        assert entries[0].year == "1968"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            JsonImporter(str(tmp_path / "missing.json")).parse()


def test_dump_uses_export_keys():
    text = dump_catalog_json([Entry(name="Käfer", year="1968", code="K03", image="a/k.jpg")])
    assert json.loads(text) == [
        {"name": "Käfer", "year": "1968", "code": "K03", "image": "a/k.jpg", "link": ""}
    ]
    assert "Käfer" in text
