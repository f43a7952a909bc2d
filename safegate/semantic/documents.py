"""Document sync for the semantic collections.

Each collection is a directory of ``N-<label>.md`` files, one fact or phrase
per file. The label is recovered from the file name of a hit so that semantic
matches on different documents keep distinct dedup keys.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from typing import Optional

from safegate.models.safety import SensitiveEntry
from safegate.scanner.definitions import JAILBREAK_PHRASES, JailbreakPhrase
from safegate.utils.logger import get_logger

logger = get_logger(__name__)

DOCUMENT_SUFFIX = ".md"


def _ensure_dir(path: str) -> None:
    os.makedirs(path, mode=0o700, exist_ok=True)


def _write_document(path: str, body: str) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        fh.write(f"{body}\n")


def _safe_label(label: str) -> str:
    slug = "".join(ch if ch.isascii() and (ch.isalnum() or ch in "-_") else "-" for ch in label)
    return slug.strip("-").lower() or "fact"


def _existing_documents(directory: str) -> list[str]:
    return sorted(name for name in os.listdir(directory) if name.endswith(DOCUMENT_SUFFIX))


def document_label(file: Optional[str], labels: Optional[dict[str, str]] = None) -> Optional[str]:
    """Recover the label for a hit's document path.

    ``labels`` maps document file names to the original label (as returned by
    the sync helpers); otherwise ``N-<label>.md`` is parsed from the name.
    """
    if not file:
        return None
    name = file.replace("\\", "/").rsplit("/", 1)[-1]
    if labels and name in labels:
        return labels[name]
    stem = name[: -len(DOCUMENT_SUFFIX)] if name.endswith(DOCUMENT_SUFFIX) else name
    prefix, sep, rest = stem.partition("-")
    if sep and prefix.isdigit() and rest:
        return rest
    return stem or None


def ensure_jailbreak_documents(
    directory: str,
    phrases: Iterable[JailbreakPhrase] = JAILBREAK_PHRASES,
) -> dict[str, str]:
    """Seed the jailbreak collection once; never overwrites existing documents.

    Returns a file name → label mapping for the seeded phrases.
    """
    _ensure_dir(directory)
    phrases = list(phrases)
    labels = {f"{idx}-{phrase.label}{DOCUMENT_SUFFIX}": phrase.label for idx, phrase in enumerate(phrases, 1)}
    if _existing_documents(directory):
        return labels

    for name, phrase in zip(labels, phrases):
        _write_document(os.path.join(directory, name), phrase.phrase)
    logger.info("Seeded jailbreak documents", directory=directory, count=len(phrases))
    return labels


def sync_sensitive_documents(directory: str, entries: Iterable[SensitiveEntry]) -> dict[str, str]:
    """Rewrite ``directory`` so it mirrors ``entries`` exactly, one document each.

    Returns a file name → label mapping.
    """
    _ensure_dir(directory)
    for name in _existing_documents(directory):
        os.unlink(os.path.join(directory, name))

    labels: dict[str, str] = {}
    for idx, entry in enumerate(entries, 1):
        name = f"{idx}-{_safe_label(entry.label)}{DOCUMENT_SUFFIX}"
        _write_document(os.path.join(directory, name), entry.pattern)
        labels[name] = entry.label
    return labels
