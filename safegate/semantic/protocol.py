"""SemanticCollaborator Protocol + SemanticHit + NullSemanticCollaborator.

Any collaborator failure (missing executable, timeout, non-zero exit,
unparseable output) surfaces as ``None`` from ``similarity_search``: never
as an exception. Callers degrade to regex-only matching and record a warning.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from safegate.utils.logger import get_logger

logger = get_logger(__name__)


# ─── SemanticHit ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SemanticHit:
    """One similarity hit above the caller's relevance floor."""

    score: float
    """Similarity score in [0, 1]."""
    file: Optional[str] = None
    """Document the hit came from, as reported by the collaborator."""
    snippet: Optional[str] = None
    """Matching excerpt, when the collaborator provides one."""


# ─── SemanticCollaborator Protocol ───────────────────────────────────────────


@runtime_checkable
class SemanticCollaborator(Protocol):
    """Pluggable similarity-search interface.

    Implementations: QmdCollaborator (external ``qmd`` process),
    NullSemanticCollaborator (no collaborator installed).
    """

    @property
    def available(self) -> bool:
        """True when a collaborator can be invoked at all."""
        ...

    async def ensure_collection(self, name: str, source_path: str) -> bool:
        """Register ``source_path`` as collection ``name`` and (re)index if needed.

        Returns False when the collaborator is unavailable or indexing failed.
        Must not raise.
        """
        ...

    async def similarity_search(
        self,
        collection: str,
        query: str,
        min_score: float,
    ) -> Optional[list[SemanticHit]]:
        """Return hits scoring at least ``min_score``; None if unavailable. Must not raise."""
        ...


# ─── NullSemanticCollaborator ────────────────────────────────────────────────


class NullSemanticCollaborator:
    """Collaborator used when no ``qmd`` executable is configured or found."""

    @property
    def available(self) -> bool:
        return False

    async def ensure_collection(self, name: str, source_path: str) -> bool:
        return False

    async def similarity_search(
        self,
        collection: str,
        query: str,
        min_score: float,
    ) -> Optional[list[SemanticHit]]:
        logger.debug("NullSemanticCollaborator.similarity_search", collection=collection)
        return None


# ─── Protocol compliance assertion ────────────────────────────────────────────
assert isinstance(NullSemanticCollaborator(), SemanticCollaborator), (
    "NullSemanticCollaborator does not satisfy SemanticCollaborator protocol: implementation error"
)
