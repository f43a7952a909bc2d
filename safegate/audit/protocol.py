"""AuditSink Protocol + JsonlAuditLog + NullAuditLog.

``append`` on a sink must never raise: a failed audit write is logged at
ERROR and reported as False so the caller can surface it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from safegate.audit.log import append_audit, read_audit_log
from safegate.audit.models import AuditEntry
from safegate.utils.logger import get_logger

logger = get_logger(__name__)


# ─── AuditSink Protocol ───────────────────────────────────────────────────────


@runtime_checkable
class AuditSink(Protocol):
    """Pluggable audit destination.

    Implementations: JsonlAuditLog (default), NullAuditLog (tests, dry tooling).
    """

    def append(self, entry: AuditEntry) -> bool:
        """Persist ``entry``. Returns False on failure. Must NEVER raise."""
        ...

    def entries(self) -> list[AuditEntry]:
        """All entries in write order."""
        ...


# ─── JsonlAuditLog ───────────────────────────────────────────────────────────


class JsonlAuditLog:
    """Append-only JSON-lines file (``audit.jsonl`` under the state root)."""

    def __init__(self, path: str) -> None:
        self.path = path

    def append(self, entry: AuditEntry) -> bool:
        try:
            append_audit(self.path, entry)
        except OSError as exc:
            logger.error(
                "Audit write failed",
                path=self.path,
                entry_id=entry.entry_id,
                error=str(exc),
            )
            return False
        logger.debug("Audit entry written", entry_id=entry.entry_id, status=entry.status)
        return True

    def entries(self) -> list[AuditEntry]:
        return read_audit_log(self.path)


# ─── NullAuditLog ────────────────────────────────────────────────────────────


class NullAuditLog:
    """No-op AuditSink; discards entries."""

    def append(self, entry: AuditEntry) -> bool:
        logger.debug("NullAuditLog.append (discarded)", entry_id=entry.entry_id)
        return True

    def entries(self) -> list[AuditEntry]:
        return []


# ─── Protocol compliance assertion ────────────────────────────────────────────
assert isinstance(NullAuditLog(), AuditSink), (
    "NullAuditLog does not satisfy AuditSink protocol: implementation error"
)
assert isinstance(JsonlAuditLog(""), AuditSink), (
    "JsonlAuditLog does not satisfy AuditSink protocol: implementation error"
)
