"""Inbound scanner: flags adversarial instructions in platform content.

Pipeline (never blocks, only annotates):
  1. Prefix cap: only the first ``scan.inbound_max_chars`` characters are scanned.
  2. Literal jailbreak phrases + social-engineering regexes over the sample.
  3. If the sample looks encoded, rescan every candidate decoding; labels carry
     the layer (``decoded_rot13:``, ``decoded_caesar_N:``, ``decoded_base64:``,
     ``decoded_hex:``). Stops once ``scan.decode_match_cap`` decoded matches
     have been collected.
  4. Optional semantic enrichment against the ``jailbreak`` collection, skipped
     when the sample exceeds ``scan.semantic_max_chars``.
  5. Deduplicate by (source, label, pattern); first match wins.

``scan_context`` follows the mutable audit-context idiom: the caller passes a
dict and reads back ``warnings``, ``semantic``, ``truncated``,
``scanned_chars``, ``duration_ms`` and ``scan_id`` after the call. A caller
that asks for the semantic step without an available collaborator gets
``semantic == "unavailable"`` plus a warning.

IMPORT RULES:
  - ``import re2`` ONLY: ``import re`` is PROHIBITED in safegate/scanner/.
"""

from __future__ import annotations

from typing import Any, Optional

from safegate.config import Config
from safegate.constants import JAILBREAK_COLLECTION
from safegate.models.safety import MatchSource, SafetyMatch, dedupe_matches
from safegate.scanner.decoder import candidate_decodings, looks_encoded
from safegate.scanner.definitions import JAILBREAK_PHRASES, SOCIAL_ENGINEERING_PATTERNS
from safegate.semantic.documents import document_label, ensure_jailbreak_documents
from safegate.semantic.protocol import SemanticCollaborator
from safegate.utils.logger import PerformanceLogger, clear_scan_id, get_logger, set_scan_id
from safegate.utils.ulid import generate_ulid

logger = get_logger(__name__)

WARN_TRUNCATED = "Inbound safety scan truncated (large payload)"
WARN_SEMANTIC_SKIPPED = "Inbound safety semantic scan skipped (large payload)"
WARN_SEMANTIC_UNAVAILABLE = "Inbound safety semantic scan unavailable"


def match_plain(text: str) -> list[SafetyMatch]:
    """Literal phrases (case-insensitive substring) then social-engineering regexes."""
    matches: list[SafetyMatch] = []
    lowered = text.lower()
    for phrase in JAILBREAK_PHRASES:
        if phrase.phrase.lower() in lowered:
            matches.append(SafetyMatch(source=MatchSource.REGEX, label=phrase.label, pattern=phrase.phrase))
    for entry in SOCIAL_ENGINEERING_PATTERNS:
        if entry.pattern.search(text):
            matches.append(SafetyMatch(source=MatchSource.REGEX, label=entry.label, pattern=entry.expression))
    return matches


def match_decoded(text: str, token_cap: int, match_cap: int) -> list[SafetyMatch]:
    """Rescan every candidate decoding of ``text``, labelling matches with their layer."""
    found: list[SafetyMatch] = []
    for layer, decoded in candidate_decodings(text, token_cap=token_cap):
        for match in match_plain(decoded):
            found.append(SafetyMatch(
                source=match.source,
                label=f"{layer}:{match.label}",
                pattern=match.pattern,
            ))
            if len(found) >= match_cap:
                logger.debug("Decoded match ceiling reached", layer=layer, cap=match_cap)
                return found
    return found


def _warn(scan_context: dict, message: str) -> None:
    warnings = scan_context.setdefault("warnings", [])
    if message not in warnings:
        warnings.append(message)


async def _semantic_matches(
    sample: str,
    collaborator: SemanticCollaborator,
    config: Config,
    scan_context: dict,
) -> list[SafetyMatch]:
    try:
        labels = ensure_jailbreak_documents(config.paths.jailbreak_dir)
    except OSError as exc:
        logger.warning("Could not prepare jailbreak documents", error=str(exc))
        labels = None

    hits = None
    if labels is not None and await collaborator.ensure_collection(
        JAILBREAK_COLLECTION, config.paths.jailbreak_dir
    ):
        hits = await collaborator.similarity_search(
            JAILBREAK_COLLECTION, sample, config.scan.inbound_threshold
        )

    if hits is None:
        scan_context["semantic"] = "unavailable"
        _warn(scan_context, WARN_SEMANTIC_UNAVAILABLE)
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


async def scan_inbound(
    text: str,
    use_semantic: bool = True,
    *,
    collaborator: Optional[SemanticCollaborator] = None,
    config: Optional[Config] = None,
    scan_context: Optional[dict[str, Any]] = None,
) -> list[SafetyMatch]:
    """Scan inbound ``text`` for jailbreak and social-engineering content.

    Never raises for collaborator failures: they degrade to regex-only with
    a warning in ``scan_context``.

    Args:
        text:          Already-sanitized inbound text.
        use_semantic:  False skips the semantic step entirely.
        collaborator:  Semantic collaborator; None is treated as unavailable.
        config:        Budgets and thresholds; defaults when None.
        scan_context:  Mutable dict receiving scan metadata (see module docstring).

    Returns:
        Deduplicated matches in detection order.
    """
    config = config or Config.defaults()
    if scan_context is None:
        scan_context = {}
    scan_context.setdefault("warnings", [])
    scan_id = scan_context.setdefault("scan_id", generate_ulid())
    set_scan_id(scan_id)

    try:
        with PerformanceLogger("inbound_scan", logger=logger) as perf:
            cap = config.scan.inbound_max_chars
            sample = text[:cap]
            scan_context["truncated"] = len(text) > cap
            scan_context["scanned_chars"] = len(sample)
            scan_context["total_chars"] = len(text)
            if scan_context["truncated"]:
                _warn(scan_context, WARN_TRUNCATED)

            matches = match_plain(sample)

            if looks_encoded(sample):
                matches.extend(match_decoded(
                    sample,
                    token_cap=config.scan.decode_token_cap,
                    match_cap=config.scan.decode_match_cap,
                ))

            scan_context["semantic"] = "skipped"
            if use_semantic and collaborator is not None and collaborator.available:
                if len(sample) > config.scan.semantic_max_chars:
                    _warn(scan_context, WARN_SEMANTIC_SKIPPED)
                else:
                    matches.extend(await _semantic_matches(sample, collaborator, config, scan_context))
            elif use_semantic:
                scan_context["semantic"] = "unavailable"
                _warn(scan_context, WARN_SEMANTIC_UNAVAILABLE)

            result = dedupe_matches(matches)
        scan_context["duration_ms"] = perf.duration_ms

        if result:
            logger.info(
                "Inbound content flagged",
                labels=[match.label for match in result],
                semantic=scan_context["semantic"],
            )
        return result
    finally:
        clear_scan_id()
