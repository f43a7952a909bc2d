"""QmdCollaborator: semantic similarity via an external ``qmd`` process.

Collections are registered in a YAML index config under the state root's
``qmd/`` directory (``QMD_CONFIG_DIR``); the vector index lives beside it
(``INDEX_PATH``). When a collection's registration changes, or the index file
is missing, ``update`` then ``embed`` are run before the first query.

Every invocation runs under an asyncio timeout. On expiry the process is
killed and the call reports exit code 124; callers see ``None`` from
``similarity_search`` and fall back to regex-only matching.
"""

from __future__ import annotations

import asyncio
import json
import os
import shlex
import shutil
from dataclasses import dataclass
from typing import Any, Optional

import yaml

from safegate.config import Config, StatePaths
from safegate.constants import SEMANTIC_INDEX_TIMEOUT_MS, SEMANTIC_TIMEOUT_MS, TIMEOUT_EXIT_CODE
from safegate.semantic.protocol import NullSemanticCollaborator, SemanticCollaborator, SemanticHit
from safegate.utils.logger import get_logger

logger = get_logger(__name__)

COLLECTION_GLOB = "**/*.md"


@dataclass(frozen=True)
class CommandResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def timed_out(self) -> bool:
        return self.exit_code == TIMEOUT_EXIT_CODE


class QmdCollaborator:
    """Drives the ``qmd`` CLI as a SemanticCollaborator.

    Args:
        command:          argv prefix used to invoke qmd (e.g. ``["qmd"]``).
        paths:            StatePaths supplying the index config and index file.
        timeout_ms:       Per-query timeout.
        index_timeout_ms: Per-step timeout for ``update`` / ``embed``.
    """

    def __init__(
        self,
        command: list[str],
        paths: StatePaths,
        timeout_ms: int = SEMANTIC_TIMEOUT_MS,
        index_timeout_ms: int = SEMANTIC_INDEX_TIMEOUT_MS,
    ) -> None:
        self.command = list(command)
        self.paths = paths
        self.timeout_ms = timeout_ms
        self.index_timeout_ms = index_timeout_ms

    @property
    def available(self) -> bool:
        return bool(self.command)

    # ── Process execution ────────────────────────────────────────────────────

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        env["QMD_CONFIG_DIR"] = self.paths.semantic_config_dir
        env["INDEX_PATH"] = self.paths.semantic_index
        env["NO_COLOR"] = "1"
        return env

    async def run(self, args: list[str], timeout_ms: Optional[int] = None) -> CommandResult:
        """Run ``qmd <args>``; never raises. ``timeout_ms <= 0`` disables the timeout."""
        if not self.available:
            return CommandResult(exit_code=1, stderr="qmd not found")

        os.makedirs(self.paths.semantic_config_dir, mode=0o700, exist_ok=True)
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.command,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._env(),
            )
        except OSError as exc:
            logger.warning("Could not start qmd", command=self.command, error=str(exc))
            return CommandResult(exit_code=1, stderr=str(exc))

        timeout_s = timeout_ms / 1000 if timeout_ms and timeout_ms > 0 else None
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_s)
        except asyncio.TimeoutError:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
            logger.warning("qmd timed out, process killed", args=args[:1], timeout_ms=timeout_ms)
            return CommandResult(exit_code=TIMEOUT_EXIT_CODE, stderr="qmd timeout")

        return CommandResult(
            exit_code=proc.returncode if proc.returncode is not None else 1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

    # ── Collection registry ──────────────────────────────────────────────────

    def load_index_config(self) -> dict[str, Any]:
        """Read the YAML index config; missing or unreadable → empty registry."""
        path = self.paths.semantic_index_config
        if not os.path.exists(path):
            return {"collections": {}}
        try:
            with open(path, encoding="utf-8") as fh:
                raw = yaml.safe_load(fh)
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Unreadable qmd index config, starting fresh", path=path, error=str(exc))
            return {"collections": {}}
        if not isinstance(raw, dict):
            return {"collections": {}}
        if not isinstance(raw.get("collections"), dict):
            raw["collections"] = {}
        return raw

    def save_index_config(self, config: dict[str, Any]) -> None:
        os.makedirs(self.paths.semantic_config_dir, mode=0o700, exist_ok=True)
        with open(self.paths.semantic_index_config, "w", encoding="utf-8") as fh:
            yaml.safe_dump(config, fh, indent=2, sort_keys=False, default_flow_style=False)

    def register_collection(self, name: str, source_path: str, pattern: str = COLLECTION_GLOB) -> bool:
        """Record ``name → {path, pattern}``. Returns True when the registry changed."""
        config = self.load_index_config()
        collections = config["collections"]
        wanted = {"path": source_path, "pattern": pattern}
        existing = collections.get(name)
        if isinstance(existing, dict) and existing.get("path") == source_path and existing.get("pattern") == pattern:
            return False
        collections[name] = wanted
        self.save_index_config(config)
        return True

    # ── SemanticCollaborator ─────────────────────────────────────────────────

    async def ensure_collection(self, name: str, source_path: str) -> bool:
        if not self.available:
            return False
        try:
            changed = self.register_collection(name, source_path)
        except OSError as exc:
            logger.warning("Could not write qmd index config", collection=name, error=str(exc))
            return False

        if changed or not os.path.exists(self.paths.semantic_index):
            for step in ("update", "embed"):
                result = await self.run([step], timeout_ms=self.index_timeout_ms)
                if not result.ok:
                    logger.warning(
                        "qmd indexing step failed",
                        collection=name,
                        step=step,
                        exit_code=result.exit_code,
                        stderr=result.stderr.strip()[:200],
                    )
                    return False
            logger.info("qmd collection indexed", collection=name, changed=changed)
        return True

    async def similarity_search(
        self,
        collection: str,
        query: str,
        min_score: float,
    ) -> Optional[list[SemanticHit]]:
        result = await self.run(
            ["vsearch", query, "--json", "--min-score", str(min_score), "-c", collection],
            timeout_ms=self.timeout_ms,
        )
        if not result.ok:
            logger.warning(
                "qmd query failed",
                collection=collection,
                exit_code=result.exit_code,
                timed_out=result.timed_out,
            )
            return None
        if not result.stdout.strip():
            return []
        return parse_hits(result.stdout, min_score)


def parse_hits(stdout: str, min_score: float) -> Optional[list[SemanticHit]]:
    """Parse ``vsearch --json`` output: ``[{score, file|document_id, snippet}]``.

    Unparseable output → None. Items without a numeric score, or below
    ``min_score``, are dropped.
    """
    try:
        parsed = json.loads(stdout)
    except ValueError:
        logger.warning("qmd returned unparseable output", preview=stdout[:120])
        return None
    if not isinstance(parsed, list):
        return None

    hits: list[SemanticHit] = []
    for item in parsed:
        if not isinstance(item, dict):
            continue
        try:
            score = float(item.get("score"))
        except (TypeError, ValueError):
            continue
        if score < min_score:
            continue
        file = item.get("file") or item.get("document_id")
        snippet = item.get("snippet")
        hits.append(SemanticHit(
            score=score,
            file=str(file) if file is not None else None,
            snippet=str(snippet) if snippet is not None else None,
        ))
    return hits


def resolve_collaborator(config: Config) -> SemanticCollaborator:
    """Pick the collaborator for ``config``.

    Disabled → Null. Explicit ``semantic.command`` (shell-split) wins; else
    ``qmd`` on PATH; else Null.
    """
    if not config.semantic.enabled:
        return NullSemanticCollaborator()

    command: list[str] = []
    if config.semantic.command:
        command = shlex.split(config.semantic.command)
    else:
        found = shutil.which("qmd")
        if found:
            command = [found]

    if not command:
        logger.debug("No qmd executable found, semantic matching unavailable")
        return NullSemanticCollaborator()

    return QmdCollaborator(
        command=command,
        paths=config.paths,
        timeout_ms=config.semantic.timeout_ms,
        index_timeout_ms=config.semantic.index_timeout_ms,
    )
