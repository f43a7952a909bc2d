"""Semantic-similarity collaborator adapter.

The engine never implements similarity itself; it asks an external
collaborator (``qmd``) and treats every failure as "unavailable".

Layout:
    protocol.py:  SemanticHit + SemanticCollaborator Protocol + NullSemanticCollaborator
    qmd.py:       QmdCollaborator (asyncio subprocess, YAML index config)
    documents.py: jailbreak seed documents and sensitive-fact document sync
"""

from safegate.semantic.documents import (
    document_label,
    ensure_jailbreak_documents,
    sync_sensitive_documents,
)
from safegate.semantic.protocol import (
    NullSemanticCollaborator,
    SemanticCollaborator,
    SemanticHit,
)
from safegate.semantic.qmd import CommandResult, QmdCollaborator, resolve_collaborator

__all__ = [
    "CommandResult",
    "NullSemanticCollaborator",
    "QmdCollaborator",
    "SemanticCollaborator",
    "SemanticHit",
    "document_label",
    "ensure_jailbreak_documents",
    "resolve_collaborator",
    "sync_sensitive_documents",
]
