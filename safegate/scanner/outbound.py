"""Outbound matcher: detects operator-private data in agent-authored text.

Order of checks:
  1. Built-in credential patterns (fixed, not user-editable).
  2. The profile's sensitive entries: literal → case-insensitive substring,
     regex → case-insensitive re2 pattern (invalid patterns skipped silently).
  3. Semantic enrichment against ``sensitive-<profile>``, whose documents are
     rewritten to mirror ``entries`` before every query.

Every match is returned, without deduplication. Blocking is the caller's
decision (see ``safegate.gateway``).

IMPORT RULES:
  - ``import re2`` ONLY: ``import re`` is PROHIBITED in safegate/scanner/.
"""

from __future__ import annotations

from collections.abc import Sequence
from functools import lru_cache
from typing import Any, Optional

import re2

from safegate.config import Config
from safegate.constants import SENSITIVE_COLLECTION_PREFIX
from safegate.models.safety import MatchSource, SafetyMatch, SensitiveEntry
from safegate.scanner.definitions import CREDENTIAL_PATTERNS
from safegate.semantic.documents import document_label, sync_sensitive_documents
from safegate.semantic.protocol import SemanticCollaborator
from safegate.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)

WARN_SEMANTIC_UNAVAILABLE = "Outbound safety semantic scan unavailable"


def sensitive_collection(profile: str) -> str:
    return f"{SENSITIVE_COLLECTION_PREFIX}{profile}"


def entry_pattern_error(pattern: str) -> Optional[str]:
    """Return re2's complaint about ``pattern``, or None when it compiles."""
    try:
        re2.compile("(?i)" + pattern)
    except re2.error as exc:
        return str(exc) or "invalid pattern"
    return None


@lru_cache(maxsize=256)
def compile_entry_pattern(pattern: str) -> Optional[Any]:
    """Compile a user regex case-insensitively; None when re2 rejects it."""
    try:
        return re2.compile("(?i)" + pattern)
    except re2.error as exc:
        logger.warning("Skipping invalid sensitive regex", pattern_length=len(pattern), error=str(exc))
        return None


def match_credentials(text: str) -> list[SafetyMatch]:
    return [
        SafetyMatch(source=MatchSource.REGEX, label=entry.label, pattern=entry.expression)
        for entry in CREDENTIAL_PATTERNS
        if entry.pattern.search(text)
    ]


def match_entries(text: str, entries: Sequence[SensitiveEntry]) -> list[SafetyMatch]:
    matches: list[SafetyMatch] = []
    lowered = text.lower()
    for entry in entries:
        if entry.is_regex:
            compiled = compile_entry_pattern(entry.pattern)
            hit = compiled is not None and compiled.search(text) is not None
        else:
            hit = entry.pattern.lower() in lowered
        if hit:
            matches.append(SafetyMatch(source=MatchSource.REGEX, label=entry.label, pattern=entry.pattern))
    return matches


async def _semantic_matches(
    text: str,
    profile: str,
    entries: Sequence[SensitiveEntry],
    collaborator: SemanticCollaborator,
    config: Config,
    scan_context: dict,
) -> list[SafetyMatch]:
    directory = config.paths.sensitive_dir(profile)
    try:
        labels = sync_sensitive_documents(directory, entries)
    except OSError as exc:
        logger.warning("Could not sync sensitive documents", profile=profile, error=str(exc))
        scan_context["semantic"] = "unavailable"
        return []

    if not entries:
        scan_context["semantic"] = "skipped"
        return []

    collection = sensitive_collection(profile)
    hits = None
    if await collaborator.ensure_collection(collection, directory):
        hits = await collaborator.similarity_search(collection, text, config.scan.outbound_threshold)

    if hits is None:
        scan_context["semantic"] = "unavailable"
        warnings = scan_context.setdefault("warnings", [])
        if WARN_SEMANTIC_UNAVAILABLE not in warnings:
            warnings.append(WARN_SEMANTIC_UNAVAILABLE)
        return []

    scan_context["semantic"] = "used"
    return [
        SafetyMatch(
            source=MatchSource.SEMANTIC,
            label=document_label(hit.file, labels),
            score=hit.score,
            file=hit.file,
            snippet=hit.snippet,
        )
        for hit in hits
    ]


async def scan_outbound(
    text: str,
    profile: str,
    entries: Sequence[SensitiveEntry],
    *,
    collaborator: Optional[SemanticCollaborator] = None,
    config: Optional[Config] = None,
    scan_context: Optional[dict[str, Any]] = None,
) -> list[SafetyMatch]:
    """Return every credential / sensitive-entry / semantic match in ``text``.

    ``text`` should already be sanitized. ``scan_context`` receives
    ``semantic`` (used / skipped / unavailable) and ``warnings``.
    """
    config = config or Config.defaults()
    if scan_context is None:
        scan_context = {}
    scan_context.setdefault("warnings", [])
    scan_context["semantic"] = "skipped"

    with PerformanceLogger("outbound_scan", logger=logger):
        matches = match_credentials(text)
        matches.extend(match_entries(text, entries))

        if collaborator is not None and collaborator.available:
            matches.extend(await _semantic_matches(text, profile, entries, collaborator, config, scan_context))

    if matches:
        logger.info(
            "Outbound content matched",
            profile=profile,
            labels=[match.label for match in matches],
        )
    return matches
