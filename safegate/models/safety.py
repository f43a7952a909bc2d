"""Safety data contracts shared by the sanitizer, scanners and stores.

  - Severity / MatchSource:  enums serialised by value
  - SensitiveEntry:          an operator-registered private fact
  - SafetyMatch:             one detection (regex or semantic)
  - SanitizationResult:      sanitizer output for a single string
  - SanitizedPayload:        sanitizer output for a JSON-like structure
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MatchSource(str, Enum):
    REGEX = "regex"
    SEMANTIC = "semantic"


@dataclass(frozen=True)
class SensitiveEntry:
    """A user-registered fact that must never leave the machine.

    Fields:
        label:    Unique per profile. Upserts replace the entry with the same label.
        pattern:  Literal text (case-insensitive substring) or regex source.
        is_regex: True when ``pattern`` is a regular expression.
        severity: Operator-assigned severity; informational only.
    """

    label: str
    pattern: str
    is_regex: bool = False
    severity: Severity = Severity.HIGH

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["SensitiveEntry"]:
        """Build an entry from persisted JSON. Returns None for malformed records.

        Accepts the legacy ``regex`` key as an alias for ``is_regex``.
        """
        if not isinstance(raw, dict):
            return None
        label = raw.get("label")
        pattern = raw.get("pattern")
        if not isinstance(label, str) or not label or not isinstance(pattern, str) or not pattern:
            return None
        try:
            severity = Severity(raw.get("severity") or Severity.HIGH.value)
        except ValueError:
            severity = Severity.HIGH
        is_regex = raw.get("is_regex", raw.get("regex", False))
        return cls(label=label, pattern=pattern, is_regex=bool(is_regex), severity=severity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "pattern": self.pattern,
            "is_regex": self.is_regex,
            "severity": self.severity.value,
        }


@dataclass(frozen=True)
class SafetyMatch:
    """A single detection result.

    ``score``, ``file`` and ``snippet`` are only set for semantic matches.
    For regex matches ``pattern`` is the rule that fired; for matches found
    under an evasion-decoding layer ``label`` carries the layer prefix
    (e.g. ``decoded_rot13:ignore_instructions``).
    """

    source: MatchSource
    label: Optional[str] = None
    pattern: Optional[str] = None
    score: Optional[float] = None
    file: Optional[str] = None
    snippet: Optional[str] = None

    @property
    def key(self) -> tuple[str, Optional[str], Optional[str]]:
        """Deduplication key: (source, label, pattern)."""
        return (self.source.value, self.label, self.pattern)

    def describe(self) -> str:
        """Human-readable one-liner naming the rule/fact (and score when semantic)."""
        name = self.label or self.file or self.pattern or "unknown"
        if self.source is MatchSource.SEMANTIC and self.score is not None:
            return f"{name} (semantic, score {self.score:.2f})"
        return f"{name} ({self.source.value})"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"source": self.source.value}
        for name in ("label", "pattern", "score", "file", "snippet"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data


def dedupe_matches(matches: list[SafetyMatch]) -> list[SafetyMatch]:
    """Keep the first match per (source, label, pattern); order preserved."""
    seen: set[tuple[str, Optional[str], Optional[str]]] = set()
    unique: list[SafetyMatch] = []
    for match in matches:
        if match.key in seen:
            continue
        seen.add(match.key)
        unique.append(match)
    return unique


@dataclass(frozen=True)
class SanitizationResult:
    """Sanitizer output for one string. ``warnings`` are unique, first-seen order."""

    text: str
    warnings: list[str] = field(default_factory=list)
    changed: bool = False


@dataclass(frozen=True)
class SanitizedPayload:
    """Sanitizer output for a JSON-like value (str | list | dict | scalar)."""

    value: Any
    warnings: list[str] = field(default_factory=list)
    changed: bool = False
