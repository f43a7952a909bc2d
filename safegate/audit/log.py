"""JSON-lines audit log.

Append-only: every call writes exactly one newline-terminated JSON record;
there is no read-modify-write. The file is created with mode 0600.
"""

from __future__ import annotations

import hashlib
import json
import os
from typing import Any, Optional

from safegate.audit.models import AuditEntry
from safegate.constants import AUDIT_PREVIEW_CHARS
from safegate.utils.logger import get_logger

logger = get_logger(__name__)

ELLIPSIS = "…"


def hash_content(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def build_content_audit(text: Optional[str]) -> dict[str, str]:
    """Return ``content_preview`` / ``content_sha256`` for ``text``.

    Empty or whitespace-only text → ``{}``.
    """
    if not text or not text.strip():
        return {}
    trimmed = text.strip()
    if len(trimmed) > AUDIT_PREVIEW_CHARS:
        preview = trimmed[:AUDIT_PREVIEW_CHARS] + ELLIPSIS
    else:
        preview = trimmed
    return {"content_preview": preview, "content_sha256": hash_content(trimmed)}


def append_audit(path: str, entry: AuditEntry) -> None:
    """Append ``entry`` as one JSON line. Raises OSError if the log cannot be written."""
    os.makedirs(os.path.dirname(os.path.abspath(path)), mode=0o700, exist_ok=True)
    line = json.dumps(entry.to_dict(), ensure_ascii=False) + "\n"
    fd = os.open(path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o600)
    with os.fdopen(fd, "a", encoding="utf-8") as fh:
        fh.write(line)


def read_audit_log(path: str) -> list[AuditEntry]:
    """Return every parseable entry in write order; malformed lines are skipped."""
    if not os.path.exists(path):
        return []

    entries: list[AuditEntry] = []
    with open(path, "rb") as fh:
        for lineno, data in enumerate(fh, 1):
            if not data.strip():
                continue
            try:
                raw: Any = json.loads(data.decode("utf-8"))
                entries.append(AuditEntry.from_dict(raw))
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning("Skipping malformed audit line", path=path, line=lineno, error=str(exc))
    return entries


def verify_content(entry: AuditEntry, text: str) -> bool:
    """Answer "did you say X?": True iff ``text`` (trimmed) hashes to the entry's digest."""
    if entry.content_sha256 is None:
        return not text.strip()
    return hash_content(text.strip()) == entry.content_sha256
