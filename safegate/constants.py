"""Shared constants for SafeGate.

All size limits, windows and thresholds used across modules are defined here.
No magic numbers in other modules: import from here.
"""

# ─── Inbound scan caps ───────────────────────────────────────────────────────

# Characters of joined inbound text scanned by the regex/decode path.
# Large enough for a feed page, small enough to bound decode cost.
INBOUND_MAX_CHARS: int = 20_000

# Samples longer than this skip the semantic collaborator (the regex path
# still runs). Embedding a whole feed page is too slow for an interactive CLI.
INBOUND_SEMANTIC_MAX_CHARS: int = 8_000

# Floor applied to both caps above when they come from config/env.
MIN_SCAN_CHARS: int = 2_000

# Maximum nesting depth walked by sanitize_structured() / string collection.
STRUCTURED_MAX_DEPTH: int = 4

# ─── Evasion decoding budget ─────────────────────────────────────────────────

# Candidate base64 / hex tokens decoded per layer.
DECODE_TOKEN_CAP: int = 8

# Decoded-layer matches after which the Caesar sweep stops early.
DECODE_MATCH_CAP: int = 20

# Minimum run length for a base64 / hex token candidate.
MIN_ENCODED_TOKEN_LENGTH: int = 20

# Decoded bytes must be at least this printable to be rescanned.
PRINTABLE_RATIO_MIN: float = 0.85

# "Looks encoded" heuristic. Empirical values: tune against a labeled corpus.
ENCODED_SAMPLE_MIN_LENGTH: int = 20
BASE64_DENSITY_MIN: float = 0.95
HEX_DENSITY_MIN: float = 0.95
CIPHER_RUN_MIN_LETTERS: int = 20
CIPHER_VOWEL_RATIO_MAX: float = 0.32
CIPHER_SPACE_RATIO_MAX: float = 0.20

# ─── Semantic collaborator ───────────────────────────────────────────────────

INBOUND_SEMANTIC_THRESHOLD: float = 0.8
OUTBOUND_SEMANTIC_THRESHOLD: float = 0.8

# Per-call timeout for queries, and for (re)indexing a collection.
SEMANTIC_TIMEOUT_MS: int = 15_000
SEMANTIC_INDEX_TIMEOUT_MS: int = 60_000

# Exit code reported for a collaborator call killed on timeout.
TIMEOUT_EXIT_CODE: int = 124

JAILBREAK_COLLECTION: str = "jailbreak"
SENSITIVE_COLLECTION_PREFIX: str = "sensitive-"

# ─── Rate governor ───────────────────────────────────────────────────────────

REQUEST_WINDOW_MS: int = 60_000
COMMENT_WINDOW_MS: int = 60 * 60_000
POST_COOLDOWN_MS: int = 30 * 60_000

REQUESTS_PER_MIN: int = 100
COMMENTS_PER_HOUR: int = 50

#: Longest single wait enforce_rate_limit() will sleep through before giving up.
DEFAULT_MAX_WAIT_S: int = 600

# ─── Audit ───────────────────────────────────────────────────────────────────

AUDIT_PREVIEW_CHARS: int = 240
AUDIT_SCHEMA_VERSION: int = 1
