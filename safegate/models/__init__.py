"""SafeGate models package.

Defines the shared data contracts used across the scanning engine and gateway:

  - safety.py:   SensitiveEntry, SafetyMatch, SanitizationResult, SanitizedPayload
  - decision.py: RateDecision, OutboundDecision, InboundReport
"""

from safegate.models.decision import (
    InboundReport,
    OutboundDecision,
    OutcomeType,
    RateAction,
    RateDecision,
)
from safegate.models.safety import (
    MatchSource,
    SafetyMatch,
    SanitizationResult,
    SanitizedPayload,
    SensitiveEntry,
    Severity,
    dedupe_matches,
)

__all__ = [
    "InboundReport",
    "MatchSource",
    "OutboundDecision",
    "OutcomeType",
    "RateAction",
    "RateDecision",
    "SafetyMatch",
    "SanitizationResult",
    "SanitizedPayload",
    "SensitiveEntry",
    "Severity",
    "dedupe_matches",
]
