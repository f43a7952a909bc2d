"""SafeGate audit log package.

Re-exports the public API for ergonomic imports:

    from safegate.audit import AuditEntry, AuditSink, JsonlAuditLog

Layout:
    models.py:   AuditEntry + OutcomeType
    log.py:      build_content_audit / append_audit / read_audit_log / verify_content
    protocol.py: AuditSink Protocol + JsonlAuditLog + NullAuditLog
"""

from safegate.audit.log import (
    append_audit,
    build_content_audit,
    hash_content,
    read_audit_log,
    verify_content,
)
from safegate.audit.models import AuditEntry, OutcomeType
from safegate.audit.protocol import AuditSink, JsonlAuditLog, NullAuditLog

__all__ = [
    # Model
    "AuditEntry",
    "OutcomeType",
    # Functions
    "append_audit",
    "build_content_audit",
    "hash_content",
    "read_audit_log",
    "verify_content",
    # Protocol + implementations
    "AuditSink",
    "JsonlAuditLog",
    "NullAuditLog",
]
