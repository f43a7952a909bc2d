"""Sensitive-entry store: ``sensitive.json`` keyed by profile.

File shape::

    {"<profile>": [{"label": ..., "pattern": ..., "is_regex": ..., "severity": ...}, ...]}

Labels are unique per profile; upserting an existing label replaces it in
place (last write wins). Malformed files or records are skipped on load.
"""

from __future__ import annotations

from typing import Optional

from safegate.config import check_profile_name
from safegate.models.safety import SensitiveEntry
from safegate.scanner.outbound import entry_pattern_error
from safegate.store.json_file import read_json, write_json_atomic
from safegate.utils.logger import get_logger

logger = get_logger(__name__)

SensitiveStore = dict[str, list[SensitiveEntry]]


def load_sensitive_store(path: str) -> SensitiveStore:
    raw = read_json(path, default={})
    if not isinstance(raw, dict):
        logger.warning("Sensitive store is not a JSON object, ignoring", path=path)
        return {}

    store: SensitiveStore = {}
    for profile, records in raw.items():
        if not isinstance(records, list):
            continue
        entries = [entry for entry in map(SensitiveEntry.from_dict, records) if entry is not None]
        skipped = len(records) - len(entries)
        if skipped:
            logger.warning("Skipped malformed sensitive entries", profile=profile, skipped=skipped)
        store[str(profile)] = entries
    return store


def save_sensitive_store(path: str, store: SensitiveStore) -> None:
    write_json_atomic(path, {
        profile: [entry.to_dict() for entry in entries]
        for profile, entries in store.items()
    })


def list_entries(path: str, profile: str) -> list[SensitiveEntry]:
    return list(load_sensitive_store(path).get(profile, []))


def upsert_entry(path: str, profile: str, entry: SensitiveEntry) -> list[SensitiveEntry]:
    """Insert ``entry`` or replace the one with the same label. Returns the profile's entries.

    Raises ValueError for a profile name that cannot name a directory or a
    regex entry re2 cannot compile.
    """
    check_profile_name(profile)
    if entry.is_regex:
        error = entry_pattern_error(entry.pattern)
        if error is not None:
            raise ValueError(f"invalid regex for sensitive entry {entry.label!r}: {error}")
    store = load_sensitive_store(path)
    entries = store.get(profile, [])
    for idx, existing in enumerate(entries):
        if existing.label == entry.label:
            entries[idx] = entry
            break
    else:
        entries.append(entry)
    store[profile] = entries
    save_sensitive_store(path, store)
    logger.info("Sensitive entry saved", profile=profile, label=entry.label, is_regex=entry.is_regex)
    return list(entries)


def remove_entry(path: str, profile: str, label: str) -> Optional[SensitiveEntry]:
    """Remove the entry with ``label``. Returns it, or None if it was not present."""
    store = load_sensitive_store(path)
    entries = store.get(profile, [])
    for idx, existing in enumerate(entries):
        if existing.label == label:
            removed = entries.pop(idx)
            store[profile] = entries
            save_sensitive_store(path, store)
            logger.info("Sensitive entry removed", profile=profile, label=label)
            return removed
    return None
