"""Crash-safe JSON files with a backup copy.

A save writes a draft, syncs it, checks it parses, moves the current file to
``.json.bak`` and promotes the draft. A load falls back to the backup when the
primary file is missing or corrupt.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)


class PersistError(Exception):
    """Raised when a JSON file cannot be written safely."""


def _sibling(path: Path, extension: str) -> Path:
    return path.with_name(f"{path.stem}.{extension}")


def _encode(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def try_parse_file(path: str | os.PathLike[str]) -> Any | None:
    """Parse a JSON file, returning None when it is unreadable or invalid."""
    path = Path(path)
    try:
        data = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
    try:
        return json.loads(data)
    except json.JSONDecodeError as exc:
        if data.strip():
            log.warning("%s: parse failed: %s", path, exc)
        return None


def load_json(path: str | os.PathLike[str]) -> Any | None:
    """Load a JSON file, recovering from its backup if the primary is unusable."""
    path = Path(path)
    value = try_parse_file(path)
    if value is not None:
        return value

    backup = _sibling(path, "json.bak")
    value = try_parse_file(backup)
    if value is not None:
        log.warning("Primary %s corrupt, recovered from backup", path)
        try:
            shutil.copyfile(backup, path)
        except OSError:
            pass
        return value

    return None


def save_json(path: str | os.PathLike[str], value: Any) -> None:
    """Write ``value`` as pretty JSON to ``path``, keeping the old file as a backup."""
    path = Path(path)
    try:
        data = json.dumps(value, indent=2, default=_encode)
    except (TypeError, ValueError) as exc:
        raise PersistError(f"failed to serialize: {exc}") from exc

    draft = _sibling(path, "json.draft")
    try:
        with open(draft, "w", encoding="utf-8") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
    except OSError as exc:
        raise PersistError(f"failed to write {draft}: {exc}") from exc

    try:
        json.loads(draft.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        draft.unlink(missing_ok=True)
        raise PersistError(f"draft verification failed for {draft}") from None

    backup = _sibling(path, "json.bak")
    try:
        os.replace(path, backup)
    except FileNotFoundError:
        pass
    except OSError as exc:
        log.warning("Failed to create backup %s: %s", backup, exc)

    try:
        os.replace(draft, path)
    except OSError as exc:
        try:
            os.replace(backup, path)
        except OSError:
            pass
        raise PersistError(f"failed to rename {draft} to {path}: {exc}") from exc


async def save_json_async(path: str | os.PathLike[str], value: Any) -> None:
    """Run :func:`save_json` in a worker thread."""
    try:
        await asyncio.to_thread(save_json, path, value)
    except PersistError:
        raise
    except Exception as exc:
        log.error("save_json_async: worker failed: %s", exc)
        raise PersistError("blocking task failed") from exc