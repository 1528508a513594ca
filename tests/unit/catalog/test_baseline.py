"""Unit tests for baseline schema files."""

import json

import pytest

from schema_migrator.catalog import load_baseline, save_baseline
from schema_migrator.exceptions import SchemaError


def test_save_and_load(tmp_path, church_schema):
    path = save_baseline(church_schema, tmp_path / "baselines" / "church.json", "church")

    document = json.loads(path.read_text())
    assert document["database"] == "church"
    assert "captured_at" in document

    loaded = load_baseline(path)
    assert loaded.structure() == church_schema.structure()


def test_missing_file(tmp_path):
    with pytest.raises(SchemaError, match="not found"):
        load_baseline(tmp_path / "missing.json")


def test_invalid_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")

    with pytest.raises(SchemaError, match="not valid JSON"):
        load_baseline(path)


def test_missing_schema_section(tmp_path):
    path = tmp_path / "empty.json"
    path.write_text(json.dumps({"database": "church"}))

    with pytest.raises(SchemaError, match="no 'schema' section"):
        load_baseline(path)
