"""AuditEntry dataclass for the SafeGate audit log.

One AuditEntry is written for every outbound decision (sent, blocked or
dry run). Entries are never mutated or deleted once written.

IMPORTANT: content is never stored in full. ``content_preview`` is at most
240 characters (plus ``…`` when truncated) and ``content_sha256`` is the
digest of the full trimmed text, so "did you say X?" can be answered
without the log itself becoming a leak vector.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from safegate.constants import AUDIT_SCHEMA_VERSION
from safegate.models.decision import OutcomeType
from safegate.utils.ulid import generate_ulid


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class AuditEntry:
    """Complete audit record for one outbound decision.

    schema_version=1: increment on breaking schema changes.
    """

    # ── Required fields (no defaults) ─────────────────────────────────────────
    profile: str
    """Agent profile the action ran under."""
    action: str
    """Action identifier, e.g. ``posts.create`` or ``comments.create``."""
    method: str
    """HTTP method of the outbound call."""
    endpoint: str
    """Endpoint path of the outbound call."""
    status: OutcomeType
    """Outcome: 'sent', 'blocked' or 'dry_run'."""

    # ── Optional fields ────────────────────────────────────────────────────────
    reason: Optional[str] = None
    """Reason code for a block: 'safety' or 'rate_limit'."""
    safety_matches: list[dict[str, Any]] = field(default_factory=list)
    """Serialised SafetyMatch list that produced the outcome."""
    sanitization: list[str] = field(default_factory=list)
    """Sanitizer warnings for the outbound content."""
    content_preview: Optional[str] = None
    """≤ 240 characters of the trimmed content, ``…``-suffixed if truncated."""
    content_sha256: Optional[str] = None
    """Hex SHA-256 of the full trimmed content."""
    meta: dict[str, Any] = field(default_factory=dict)
    """Free-form metadata (e.g. override flag, semantic status)."""

    # ── Always present ─────────────────────────────────────────────────────────
    entry_id: str = field(default_factory=generate_ulid)
    """ULID for this entry."""
    timestamp: str = field(default_factory=utc_timestamp)
    """ISO-8601 UTC time of the decision."""
    schema_version: int = AUDIT_SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "schema_version": self.schema_version,
            "entry_id": self.entry_id,
            "timestamp": self.timestamp,
            "profile": self.profile,
            "action": self.action,
            "method": self.method,
            "endpoint": self.endpoint,
            "status": self.status,
        }
        if self.reason is not None:
            data["reason"] = self.reason
        if self.safety_matches:
            data["safety_matches"] = list(self.safety_matches)
        if self.sanitization:
            data["sanitization"] = list(self.sanitization)
        if self.content_preview is not None:
            data["content_preview"] = self.content_preview
        if self.content_sha256 is not None:
            data["content_sha256"] = self.content_sha256
        if self.meta:
            data["meta"] = dict(self.meta)
        return data

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "AuditEntry":
        """Rebuild an entry from a parsed log line. Raises KeyError/TypeError if malformed."""
        return cls(
            profile=str(raw["profile"]),
            action=str(raw["action"]),
            method=str(raw["method"]),
            endpoint=str(raw["endpoint"]),
            status=raw["status"],
            reason=raw.get("reason"),
            safety_matches=list(raw.get("safety_matches") or []),
            sanitization=list(raw.get("sanitization") or []),
            content_preview=raw.get("content_preview"),
            content_sha256=raw.get("content_sha256"),
            meta=dict(raw.get("meta") or {}),
            entry_id=str(raw.get("entry_id") or ""),
            timestamp=str(raw["timestamp"]),
            schema_version=int(raw.get("schema_version", AUDIT_SCHEMA_VERSION)),
        )
