"""Unit tests for the sensitive-entry store (safegate/store/)."""

from __future__ import annotations

import json
import os
import stat

import pytest

from safegate.models.safety import SensitiveEntry, Severity
from safegate.store import (
    list_entries,
    load_sensitive_store,
    read_json,
    remove_entry,
    upsert_entry,
    write_json_atomic,
)


class TestSensitiveStore:

    def test_missing_store_is_empty(self, tmp_path) -> None:
        assert load_sensitive_store(str(tmp_path / "sensitive.json")) == {}

    def test_upsert_and_list(self, tmp_path) -> None:
        path = str(tmp_path / "sensitive.json")
        upsert_entry(path, "tom", SensitiveEntry(label="owner-email", pattern="operator@example.com"))
        upsert_entry(path, "tom", SensitiveEntry(label="phone", pattern=r"\d{3}-\d{4}", is_regex=True))
        entries = list_entries(path, "tom")
        assert [e.label for e in entries] == ["owner-email", "phone"]
        assert entries[1].is_regex is True
        assert list_entries(path, "ann") == []

    def test_upsert_replaces_same_label_in_place(self, tmp_path) -> None:
        path = str(tmp_path / "sensitive.json")
        upsert_entry(path, "tom", SensitiveEntry(label="a", pattern="one"))
        upsert_entry(path, "tom", SensitiveEntry(label="b", pattern="two"))
        upsert_entry(path, "tom", SensitiveEntry(label="a", pattern="uno", severity=Severity.LOW))
        entries = list_entries(path, "tom")
        assert [(e.label, e.pattern) for e in entries] == [("a", "uno"), ("b", "two")]
        assert entries[0].severity is Severity.LOW

    def test_remove(self, tmp_path) -> None:
        path = str(tmp_path / "sensitive.json")
        upsert_entry(path, "tom", SensitiveEntry(label="a", pattern="one"))
        removed = remove_entry(path, "tom", "a")
        assert removed is not None and removed.pattern == "one"
        assert list_entries(path, "tom") == []
        assert remove_entry(path, "tom", "a") is None

    def test_malformed_records_skipped(self, tmp_path) -> None:
        path = tmp_path / "sensitive.json"
        path.write_text(json.dumps({
            "tom": [
                {"label": "ok", "pattern": "fine", "regex": True, "severity": "bogus"},
                {"label": "", "pattern": "x"},
                "junk",
            ],
            "ann": "not a list",
        }))
        store = load_sensitive_store(str(path))
        assert list(store) == ["tom"]
        entry = store["tom"][0]
        assert entry.is_regex is True
        assert entry.severity is Severity.HIGH

    def test_malformed_file_is_empty(self, tmp_path) -> None:
        path = tmp_path / "sensitive.json"
        path.write_text("[1, 2")
        assert load_sensitive_store(str(path)) == {}

    def test_uncompilable_regex_rejected_and_not_stored(self, tmp_path) -> None:
        path = str(tmp_path / "sensitive.json")
        upsert_entry(path, "tom", SensitiveEntry(label="a", pattern="one"))
        bad = SensitiveEntry(label="api-secret", pattern=r"secret-\d+(?!-public)", is_regex=True)
        with pytest.raises(ValueError, match="invalid regex"):
            upsert_entry(path, "tom", bad)
        assert [e.label for e in list_entries(path, "tom")] == ["a"]

    def test_literal_entry_not_compiled(self, tmp_path) -> None:
        path = str(tmp_path / "sensitive.json")
        upsert_entry(path, "tom", SensitiveEntry(label="paren", pattern="(unclosed"))
        assert list_entries(path, "tom")[0].pattern == "(unclosed"

    def test_path_like_profile_rejected(self, tmp_path) -> None:
        path = str(tmp_path / "sensitive.json")
        with pytest.raises(ValueError, match="invalid profile name"):
            upsert_entry(path, "../jailbreak", SensitiveEntry(label="a", pattern="one"))
        assert not os.path.exists(path)


class TestJsonFile:

    def test_atomic_write_creates_parent_and_private_file(self, tmp_path) -> None:
        path = tmp_path / "nested" / "state.json"
        write_json_atomic(str(path), {"a": [1, 2]})
        assert json.loads(path.read_text()) == {"a": [1, 2]}
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
        assert [p.name for p in path.parent.iterdir()] == ["state.json"]

    def test_overwrite(self, tmp_path) -> None:
        path = str(tmp_path / "state.json")
        write_json_atomic(path, {"v": 1})
        write_json_atomic(path, {"v": 2})
        assert read_json(path) == {"v": 2}

    def test_read_defaults(self, tmp_path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text("nope")
        assert read_json(str(tmp_path / "missing.json"), default={}) == {}
        assert read_json(str(bad), default=[]) == []
