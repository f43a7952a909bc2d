"""Config loading for SafeGate.

Reads `.safegate/config.yaml` (or `~/.config/safegate/config.yaml`).
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. `config_path` argument (explicit override, also used by tests)
  2. SAFEGATE_CONFIG environment variable (if set)
  3. `.safegate/config.yaml` (working directory, for development)
  4. `~/.config/safegate/config.yaml` (home directory)

Environment variable overrides (applied after the file, always win):
  SAFEGATE_HOME:                        state root (sensitive store, audit log, rate limits)
  SAFEGATE_INBOUND_MAX_CHARS:           scan.inbound_max_chars
  SAFEGATE_INBOUND_SEMANTIC_MAX_CHARS:  scan.semantic_max_chars
  SAFEGATE_DECODE_TOKEN_CAP:            scan.decode_token_cap
  SAFEGATE_SEMANTIC_TIMEOUT_MS:         semantic.timeout_ms
  SAFEGATE_SEMANTIC_INDEX_TIMEOUT_MS:   semantic.index_timeout_ms
  SAFEGATE_SEMANTIC_COMMAND:            semantic.command

Unlike a server, the engine never refuses to run over configuration: a broken
file or a malformed override is logged and the default is kept.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Optional

import yaml

from safegate.constants import (
    DECODE_MATCH_CAP,
    DECODE_TOKEN_CAP,
    INBOUND_MAX_CHARS,
    INBOUND_SEMANTIC_MAX_CHARS,
    INBOUND_SEMANTIC_THRESHOLD,
    MIN_SCAN_CHARS,
    OUTBOUND_SEMANTIC_THRESHOLD,
    SEMANTIC_INDEX_TIMEOUT_MS,
    SEMANTIC_TIMEOUT_MS,
)
from safegate.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

DEFAULT_STATE_ROOT = "~/.config/safegate"

# Default config search paths (SAFEGATE_CONFIG env var prepended at runtime)
DEFAULT_CONFIG_PATHS = [
    ".safegate/config.yaml",
    os.path.expanduser("~/.config/safegate/config.yaml"),
]


def check_profile_name(profile: str) -> str:
    """Return ``profile`` unchanged, or raise ValueError if it cannot name a directory under the state root."""
    separators = {"/", "\\", os.sep} | ({os.altsep} if os.altsep else set())
    if (
        not profile
        or profile in (".", "..")
        or ".." in profile
        or "\x00" in profile
        or any(sep in profile for sep in separators)
    ):
        raise ValueError(f"invalid profile name: {profile!r}")
    return profile


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ScanConfig:
    """Inbound/outbound scanner budgets and thresholds."""

    inbound_max_chars: int = INBOUND_MAX_CHARS
    semantic_max_chars: int = INBOUND_SEMANTIC_MAX_CHARS
    decode_token_cap: int = DECODE_TOKEN_CAP
    decode_match_cap: int = DECODE_MATCH_CAP
    inbound_threshold: float = INBOUND_SEMANTIC_THRESHOLD
    outbound_threshold: float = OUTBOUND_SEMANTIC_THRESHOLD


@dataclass
class SemanticConfig:
    """Semantic similarity collaborator (external `qmd` process).

    command: explicit executable; None → resolved from PATH at runtime.
    """

    enabled: bool = True
    command: Optional[str] = None
    timeout_ms: int = SEMANTIC_TIMEOUT_MS
    index_timeout_ms: int = SEMANTIC_INDEX_TIMEOUT_MS


@dataclass
class StatePaths:
    """Every persisted location, derived from a single state root."""

    root: str

    @property
    def sensitive_store(self) -> str:
        return os.path.join(self.root, "sensitive.json")

    @property
    def rate_limits(self) -> str:
        return os.path.join(self.root, "rate_limits.json")

    @property
    def audit_log(self) -> str:
        return os.path.join(self.root, "audit.jsonl")

    @property
    def jailbreak_dir(self) -> str:
        return os.path.join(self.root, "jailbreak")

    def sensitive_dir(self, profile: str) -> str:
        return os.path.join(self.root, "sensitive", check_profile_name(profile))

    @property
    def semantic_config_dir(self) -> str:
        return os.path.join(self.root, "qmd")

    @property
    def semantic_index_config(self) -> str:
        return os.path.join(self.semantic_config_dir, "index.yml")

    @property
    def semantic_index(self) -> str:
        return os.path.join(self.semantic_config_dir, "index.sqlite")


@dataclass
class StateConfig:
    """Location of persisted state."""

    root: str = DEFAULT_STATE_ROOT

    @property
    def paths(self) -> StatePaths:
        return StatePaths(root=os.path.expanduser(self.root))


@dataclass
class Config:
    """Root configuration object populated from config.yaml.

    All fields have safe defaults: SafeGate runs without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    scan: ScanConfig = field(default_factory=ScanConfig)
    semantic: SemanticConfig = field(default_factory=SemanticConfig)
    state: StateConfig = field(default_factory=StateConfig)
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @property
    def paths(self) -> StatePaths:
        return self.state.paths

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.
        Values of the wrong type are logged and replaced by their default.
        """
        # ── Scan ──────────────────────────────────────────────────────────────
        scan_raw = _section(raw, "scan")
        scan = ScanConfig(
            inbound_max_chars=max(
                MIN_SCAN_CHARS,
                _int(scan_raw, "inbound_max_chars", INBOUND_MAX_CHARS),
            ),
            semantic_max_chars=max(
                MIN_SCAN_CHARS,
                _int(scan_raw, "semantic_max_chars", INBOUND_SEMANTIC_MAX_CHARS),
            ),
            decode_token_cap=max(0, _int(scan_raw, "decode_token_cap", DECODE_TOKEN_CAP)),
            decode_match_cap=max(1, _int(scan_raw, "decode_match_cap", DECODE_MATCH_CAP)),
            inbound_threshold=_float(scan_raw, "inbound_threshold", INBOUND_SEMANTIC_THRESHOLD),
            outbound_threshold=_float(scan_raw, "outbound_threshold", OUTBOUND_SEMANTIC_THRESHOLD),
        )

        # ── Semantic ──────────────────────────────────────────────────────────
        semantic_raw = _section(raw, "semantic")
        command = semantic_raw.get("command")
        semantic = SemanticConfig(
            enabled=bool(semantic_raw.get("enabled", True)),
            command=str(command) if command else None,
            timeout_ms=_int(semantic_raw, "timeout_ms", SEMANTIC_TIMEOUT_MS),
            index_timeout_ms=_int(semantic_raw, "index_timeout_ms", SEMANTIC_INDEX_TIMEOUT_MS),
        )

        # ── State ─────────────────────────────────────────────────────────────
        state_raw = _section(raw, "state")
        state = StateConfig(root=str(state_raw.get("root", DEFAULT_STATE_ROOT)))

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            scan=scan,
            semantic=semantic,
            state=state,
            path=path,
        )


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        logger.warning("Config section is not a mapping, using defaults", section=name)
        return {}
    return value


def _int(raw: dict, key: str, default: int) -> int:
    value = raw.get(key, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid integer in config, using default", key=key, value=value)
        return default


def _float(raw: dict, key: str, default: float) -> float:
    value = raw.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid number in config, using default", key=key, value=value)
        return default


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load SafeGate configuration.

    Search order:
      1. ``config_path`` argument
      2. ``SAFEGATE_CONFIG`` environment variable
      3. ``.safegate/config.yaml``
      4. ``~/.config/safegate/config.yaml``

    Missing file → defaults. Unreadable file, invalid YAML, non-mapping YAML or
    unsupported version → logged at ERROR and defaults are used. Environment
    overrides are applied in every case.

    Returns:
        Config object with all values populated (file values merged onto defaults).
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("SAFEGATE_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        logger.debug("No config file found, using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    logger.debug("Loading config", path=found_path)
    config = _parse_config_file(found_path)
    _apply_env_overrides(config)
    return config


def _parse_config_file(found_path: str) -> Config:
    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        logger.error("Config parse error, using defaults", path=found_path, error=str(exc))
        return Config.defaults()
    except OSError as exc:
        logger.error("Could not read config, using defaults", path=found_path, error=str(exc))
        return Config.defaults()

    if raw is None:
        return Config(path=found_path)

    if not isinstance(raw, dict):
        logger.error("Config is not a YAML mapping, using defaults", path=found_path)
        return Config.defaults()

    version = raw.get("version", SUPPORTED_CONFIG_VERSION)
    if version not in SUPPORTED_VERSIONS:
        logger.error(
            "Unsupported config version, using defaults",
            path=found_path,
            version=version,
            supported=sorted(SUPPORTED_VERSIONS),
        )
        return Config.defaults()

    return Config.from_dict(raw, path=found_path)


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Invalid integers are logged and ignored.
    """
    env_home = os.environ.get("SAFEGATE_HOME")
    if env_home:
        config.state.root = env_home

    env_command = os.environ.get("SAFEGATE_SEMANTIC_COMMAND")
    if env_command:
        config.semantic.command = env_command

    inbound = _env_int("SAFEGATE_INBOUND_MAX_CHARS")
    if inbound is not None:
        config.scan.inbound_max_chars = max(MIN_SCAN_CHARS, inbound)

    semantic_cap = _env_int("SAFEGATE_INBOUND_SEMANTIC_MAX_CHARS")
    if semantic_cap is not None:
        config.scan.semantic_max_chars = max(MIN_SCAN_CHARS, semantic_cap)

    token_cap = _env_int("SAFEGATE_DECODE_TOKEN_CAP")
    if token_cap is not None:
        config.scan.decode_token_cap = max(0, token_cap)

    timeout = _env_int("SAFEGATE_SEMANTIC_TIMEOUT_MS")
    if timeout is not None:
        config.semantic.timeout_ms = timeout

    index_timeout = _env_int("SAFEGATE_SEMANTIC_INDEX_TIMEOUT_MS")
    if index_timeout is not None:
        config.semantic.index_timeout_ms = index_timeout


def _env_int(name: str) -> Optional[int]:
    value: Any = os.environ.get(name)
    if value is None or value.strip() == "":
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring non-integer environment override", name=name, value=value)
        return None
