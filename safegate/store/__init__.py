"""Persistent local state.

    json_file.py: read_json / write_json_atomic (temp file + os.replace, mode 0600)
    sensitive.py: profile-keyed SensitiveEntry store (sensitive.json)
"""

from safegate.store.json_file import read_json, write_json_atomic
from safegate.store.sensitive import (
    SensitiveStore,
    list_entries,
    load_sensitive_store,
    remove_entry,
    save_sensitive_store,
    upsert_entry,
)

__all__ = [
    "SensitiveStore",
    "list_entries",
    "load_sensitive_store",
    "read_json",
    "remove_entry",
    "save_sensitive_store",
    "upsert_entry",
    "write_json_atomic",
]
