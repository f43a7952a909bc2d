"""Structured decisions returned to the CLI layer.

Policy violations and rate-limit denials are values, never exceptions:

  RateDecision:
      allow / deny with the wait (ms) before the action may be retried.

  OutboundDecision:
      allow / block for agent-authored content. A block always names every
      rule or fact that matched (and the score for semantic matches) so the
      operator can see why it fired.

  InboundReport:
      sanitized payload plus the matches and warnings to show alongside it.
      Inbound content is never suppressed, only annotated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from safegate.models.safety import SafetyMatch

OutcomeType = Literal["sent", "blocked", "dry_run"]
RateAction = Literal["request", "comment", "post"]
SemanticStatus = Literal["used", "skipped", "unavailable"]


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    wait_ms: int = 0
    reason: str = "ok"

    @property
    def wait_seconds(self) -> int:
        """Wait rounded up to whole seconds, for display."""
        return -(-self.wait_ms // 1000)


@dataclass(frozen=True)
class OutboundDecision:
    """Outcome of the outbound gate.

    Fields:
        allowed:      False when the caller must not send.
        reason:       None when allowed; ``"rate_limit"`` or ``"safety"`` otherwise.
        matches:      Every outbound match (reported even when overridden).
        sanitized:    The sanitized outbound fields, ready to send.
        sanitization: Sanitizer warnings for the outbound fields.
        wait_ms:      Rate-limit wait when reason == "rate_limit".
        overridden:   True when matches were found but the operator override was set.
        dry_run:      True when the caller asked to validate without sending.
    """

    allowed: bool
    reason: Optional[str] = None
    matches: list[SafetyMatch] = field(default_factory=list)
    sanitized: dict[str, Optional[str]] = field(default_factory=dict)
    sanitization: list[str] = field(default_factory=list)
    wait_ms: int = 0
    overridden: bool = False
    dry_run: bool = False

    @property
    def status(self) -> OutcomeType:
        if not self.allowed:
            return "blocked"
        return "dry_run" if self.dry_run else "sent"

    @property
    def message(self) -> str:
        if self.allowed:
            if self.overridden:
                return "Outbound content flagged as sensitive; sent under operator override."
            return "ok"
        if self.reason == "rate_limit":
            return f"Rate limit hit. Retry after {-(-self.wait_ms // 1000)}s."
        names = "; ".join(match.describe() for match in self.matches)
        return (
            f"Outbound content flagged as sensitive: {names}. "
            "Use --allow-sensitive to override."
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "status": self.status,
            "reason": self.reason,
            "matches": [match.to_dict() for match in self.matches],
            "sanitization": list(self.sanitization),
            "wait_ms": self.wait_ms,
            "overridden": self.overridden,
            "message": self.message,
        }


@dataclass(frozen=True)
class InboundReport:
    """Annotated inbound payload: content plus safety flags, never filtered."""

    data: Any
    safety: list[SafetyMatch] = field(default_factory=list)
    sanitization: list[str] = field(default_factory=list)
    truncated: bool = False
    semantic: SemanticStatus = "skipped"
    scanned_chars: int = 0
    total_chars: int = 0

    @property
    def flagged(self) -> bool:
        return bool(self.safety)

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": self.data,
            "safety": [match.to_dict() for match in self.safety],
            "sanitization": list(self.sanitization),
            "meta": {
                "truncated": self.truncated,
                "semantic": self.semantic,
                "scanned_chars": self.scanned_chars,
                "total_chars": self.total_chars,
            },
        }
