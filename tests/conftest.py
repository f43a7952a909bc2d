"""Root test configuration for SafeGate.

Every test gets an isolated state root under tmp_path and a scrubbed
environment, so no test reads or writes ~/.config/safegate.
"""

from __future__ import annotations

import os
from typing import Any, Optional

import pytest

from safegate.config import Config, StateConfig
from safegate.semantic.protocol import SemanticHit

_ENV_OVERRIDES = (
    "SAFEGATE_CONFIG",
    "SAFEGATE_HOME",
    "SAFEGATE_INBOUND_MAX_CHARS",
    "SAFEGATE_INBOUND_SEMANTIC_MAX_CHARS",
    "SAFEGATE_DECODE_TOKEN_CAP",
    "SAFEGATE_SEMANTIC_TIMEOUT_MS",
    "SAFEGATE_SEMANTIC_INDEX_TIMEOUT_MS",
    "SAFEGATE_SEMANTIC_COMMAND",
)


@pytest.fixture(autouse=True)
def clean_safegate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove SafeGate environment overrides so config defaults are predictable."""
    for name in _ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def state_root(tmp_path: Any) -> str:
    root = tmp_path / "state"
    root.mkdir()
    return str(root)


@pytest.fixture
def config(state_root: str) -> Config:
    cfg = Config.defaults()
    cfg.state = StateConfig(root=state_root)
    cfg.semantic.enabled = False
    return cfg


class FakeCollaborator:
    """In-memory SemanticCollaborator.

    ``hits`` maps collection name → hits to return; a collection missing from
    the map returns ``default`` (None means "unavailable").
    """

    def __init__(
        self,
        hits: Optional[dict[str, list[SemanticHit]]] = None,
        default: Optional[list[SemanticHit]] = None,
        index_ok: bool = True,
    ) -> None:
        self.hits = hits or {}
        self.default = default
        self.index_ok = index_ok
        self.collections: dict[str, str] = {}
        self.queries: list[tuple[str, str, float]] = []

    @property
    def available(self) -> bool:
        return True

    async def ensure_collection(self, name: str, source_path: str) -> bool:
        self.collections[name] = source_path
        return self.index_ok

    async def similarity_search(
        self,
        collection: str,
        query: str,
        min_score: float,
    ) -> Optional[list[SemanticHit]]:
        self.queries.append((collection, query, min_score))
        return self.hits.get(collection, self.default)

    def documents(self, name: str) -> list[str]:
        return sorted(os.listdir(self.collections[name]))


@pytest.fixture
def fake_collaborator() -> FakeCollaborator:
    return FakeCollaborator(default=[])
