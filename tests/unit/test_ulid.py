"""Unit tests for ULID generation (safegate/utils/ulid.py).

ULIDs identify audit entries (AuditEntry.entry_id) and scans (scan_id log key).
"""

from __future__ import annotations

import re
import time

from safegate.utils.ulid import generate_ulid

# Crockford Base32 charset: 0-9 and A-Z, excluding I, L, O, U
ULID_CHARSET = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$")


def test_generate_ulid_format() -> None:
    result = generate_ulid()
    assert isinstance(result, str)
    assert ULID_CHARSET.match(result), f"ULID {result!r} has invalid characters"


def test_generate_ulid_unique_1000() -> None:
    ulids = [generate_ulid() for _ in range(1000)]
    assert len(set(ulids)) == 1000
    assert all(ULID_CHARSET.match(u) for u in ulids)


def test_generate_ulid_sorts_by_time() -> None:
    """A ULID from a later millisecond sorts after an earlier one."""
    first = generate_ulid()
    time.sleep(0.002)
    second = generate_ulid()
    assert second > first
