"""Unicode sanitizer: strips invisible and obfuscating codepoints.

Applied to every string crossing the gateway, inbound and outbound, before any
pattern matching. Python ``str`` iteration is by codepoint, so multi-codepoint
sequences (a flag base followed by Tags-block characters) are inspected as a unit.

Rules (left to right):
  - Tags block U+E0000–U+E007F: stripped, except an allow-listed subdivision
    flag (U+1F3F4, tag letters, U+E007F cancel) which is kept verbatim.
  - Variation selectors U+FE00–U+FE0F, U+E0100–U+E01EF: stripped.
  - Zero-width U+200B, U+200C, U+200D, U+2060: stripped.
  - Bidi overrides/isolates U+202A–U+202E, U+2066–U+2069: stripped.
  - Interlinear annotation U+FFF9–U+FFFB: stripped.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from safegate.constants import STRUCTURED_MAX_DEPTH
from safegate.models.safety import SanitizationResult, SanitizedPayload

TAG_START = 0xE0000
TAG_END = 0xE007F
TAG_CANCEL = 0xE007F
BLACK_FLAG = 0x1F3F4

#: England, Scotland, Wales subdivision flags.
ALLOWED_TAG_SEQUENCES: frozenset[str] = frozenset({"gbeng", "gbsct", "gbwls"})

WARN_TAGS = "Stripped Unicode tag characters"
WARN_VARIATION = "Stripped Unicode variation selectors"
WARN_ZERO_WIDTH = "Stripped zero-width characters"
WARN_BIDI = "Stripped bidirectional override characters"
WARN_INTERLINEAR = "Stripped interlinear annotation characters"

_ZERO_WIDTH = frozenset({0x200B, 0x200C, 0x200D, 0x2060})


def _is_tag(cp: int) -> bool:
    return TAG_START <= cp <= TAG_END


def _is_variation_selector(cp: int) -> bool:
    return 0xFE00 <= cp <= 0xFE0F or 0xE0100 <= cp <= 0xE01EF


def _is_bidi_override(cp: int) -> bool:
    return 0x202A <= cp <= 0x202E or 0x2066 <= cp <= 0x2069


def _is_interlinear(cp: int) -> bool:
    return 0xFFF9 <= cp <= 0xFFFB


def _classify(cp: int) -> Optional[str]:
    """Return the warning for a strippable codepoint, None if it passes through."""
    if _is_tag(cp):
        return WARN_TAGS
    if _is_variation_selector(cp):
        return WARN_VARIATION
    if cp in _ZERO_WIDTH:
        return WARN_ZERO_WIDTH
    if _is_bidi_override(cp):
        return WARN_BIDI
    if _is_interlinear(cp):
        return WARN_INTERLINEAR
    return None


def _tag_sequence_to_ascii(seq: list[int]) -> str:
    return "".join(chr(cp - TAG_START) for cp in seq)


def sanitize(text: str) -> SanitizationResult:
    """Strip obfuscating codepoints from ``text``.

    Never raises. ``changed`` is True iff at least one codepoint was removed.
    Idempotent: sanitizing the output again changes nothing.
    """
    chars = list(text)
    warnings: list[str] = []
    out: list[str] = []
    changed = False
    i = 0

    def warn(message: str) -> None:
        if message not in warnings:
            warnings.append(message)

    while i < len(chars):
        ch = chars[i]
        cp = ord(ch)

        if cp == BLACK_FLAG:
            # Collect the tag letters up to (not including) a cancel tag.
            j = i + 1
            sequence: list[int] = []
            while j < len(chars):
                next_cp = ord(chars[j])
                if next_cp == TAG_CANCEL or not _is_tag(next_cp):
                    break
                sequence.append(next_cp)
                j += 1

            if sequence and j < len(chars) and ord(chars[j]) == TAG_CANCEL:
                out.append(ch)
                if _tag_sequence_to_ascii(sequence) in ALLOWED_TAG_SEQUENCES:
                    out.extend(chars[i + 1:j + 1])
                else:
                    changed = True
                    warn(WARN_TAGS)
                i = j + 1
                continue

        category = _classify(cp)
        if category is not None:
            changed = True
            warn(category)
        else:
            out.append(ch)
        i += 1

    return SanitizationResult(text="".join(out), warnings=warnings, changed=changed)


def sanitize_structured(value: Any, max_depth: int = STRUCTURED_MAX_DEPTH) -> SanitizedPayload:
    """Sanitize every string leaf of a JSON-like value.

    Walks lists/tuples and mappings (key order preserved, keys untouched) down
    to ``max_depth``. Values nested deeper are returned as-is, without error.
    Non-string scalars pass through unchanged.
    """
    warnings: list[str] = []
    changed = False

    def walk(node: Any, depth: int) -> Any:
        nonlocal changed
        if depth > max_depth:
            return node
        if isinstance(node, str):
            result = sanitize(node)
            for warning in result.warnings:
                if warning not in warnings:
                    warnings.append(warning)
            if result.changed:
                changed = True
            return result.text
        if isinstance(node, (list, tuple)):
            return [walk(item, depth + 1) for item in node]
        if isinstance(node, Mapping):
            return {key: walk(item, depth + 1) for key, item in node.items()}
        return node

    return SanitizedPayload(value=walk(value, 0), warnings=warnings, changed=changed)


def sanitize_fields(fields: Mapping[str, Optional[str]]) -> SanitizedPayload:
    """Sanitize a flat mapping of optional strings (e.g. title/content/url).

    ``value`` is a new dict with the same keys; None values pass through.
    """
    warnings: list[str] = []
    changed = False
    sanitized: dict[str, Optional[str]] = {}
    for key, text in fields.items():
        if not isinstance(text, str):
            sanitized[key] = text
            continue
        result = sanitize(text)
        for warning in result.warnings:
            if warning not in warnings:
                warnings.append(warning)
        changed = changed or result.changed
        sanitized[key] = result.text
    return SanitizedPayload(value=sanitized, warnings=warnings, changed=changed)


def collect_strings(value: Any, max_depth: int = STRUCTURED_MAX_DEPTH) -> list[str]:
    """Collect string leaves of a JSON-like value in traversal order (depth-bounded)."""
    acc: list[str] = []

    def walk(node: Any, depth: int) -> None:
        if depth > max_depth:
            return
        if isinstance(node, str):
            acc.append(node)
        elif isinstance(node, (list, tuple)):
            for item in node:
                walk(item, depth + 1)
        elif isinstance(node, Mapping):
            for item in node.values():
                walk(item, depth + 1)

    walk(value, 0)
    return acc
