"""ULID generation utility for SafeGate.

Provides a single `generate_ulid()` function that returns a 26-character ULID
(Universally Unique Lexicographically Sortable Identifier) suitable for use as:
  - entry_id field in audit entries (AuditEntry.entry_id)
  - scan_id correlation key in structured log entries

Uses the `python-ulid` library: do NOT hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID as a 26-character uppercase string.

    Returns:
        str: A 26-character ULID string (e.g., ``"01HXXXXXXXXXXXXXXXXXXXXXX"``).
             Format: Crockford Base32, charset ``[0-9A-HJKMNP-TV-Z]``, exactly 26 chars.
    """
    return str(ULID())
