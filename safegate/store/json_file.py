"""JSON persistence helpers shared by the sensitive store and rate governor.

Writes go to a temp file in the destination directory, are fsynced, chmod'ed
to 0600 and moved into place with ``os.replace``, so readers only ever see a
complete document.
"""

from __future__ import annotations

import json
import os
import tempfile
from typing import Any

from safegate.utils.logger import get_logger

logger = get_logger(__name__)


def read_json(path: str, default: Any = None) -> Any:
    """Load JSON from ``path``. Missing, unreadable or malformed → ``default``."""
    if not os.path.exists(path):
        return default
    try:
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable JSON state file", path=path, error=str(exc))
        return default


def write_json_atomic(path: str, data: Any) -> None:
    """Atomically replace ``path`` with ``data`` serialised as indented JSON."""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, mode=0o700, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", suffix=".json", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2)
            fh.write("\n")
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
