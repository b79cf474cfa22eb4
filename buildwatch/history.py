"""In-memory build history per watched repo/branch, and its persisted form."""

from __future__ import annotations

import dataclasses
from typing import Any

from buildwatch.dirs import state_dir
from buildwatch.github import LastBuild
from buildwatch.jsonstore import load_json

MAX_HISTORY = 20

WatchKey = tuple[str, str]
"""A ``(repo, branch)`` pair."""

BuildHistory = dict[WatchKey, list[LastBuild]]

_KEY_SEPARATOR = "#"


def _newest_first(completed_at: int | None) -> tuple[bool, int]:
    return (completed_at is not None, completed_at or 0)


def push_build(history: BuildHistory, key: WatchKey, build: LastBuild) -> None:
    """Prepend ``build`` to the history for ``key``, keeping at most MAX_HISTORY."""
    builds = history.setdefault(key, [])
    builds.insert(0, build)
    del builds[MAX_HISTORY:]


def history_for(
    history: BuildHistory, repo: str, branch: str | None, limit: int
) -> list[tuple[str, LastBuild]]:
    """``(branch, build)`` pairs for ``repo``, newest first, at most ``limit``."""
    entries = [
        (key_branch, dataclasses.replace(build))
        for (key_repo, key_branch), builds in history.items()
        if key_repo == repo and (branch is None or key_branch == branch)
        for build in builds
    ]
    entries.sort(key=lambda entry: _newest_first(entry[1].completed_at), reverse=True)
    return entries[:limit]


def history_all(history: BuildHistory, limit: int) -> list[tuple[str, str, LastBuild]]:
    """``(repo, branch, build)`` triples across all watches, newest first."""
    entries = [
        (repo, branch, dataclasses.replace(build))
        for (repo, branch), builds in history.items()
        for build in builds
    ]
    entries.sort(key=lambda entry: _newest_first(entry[2].completed_at), reverse=True)
    return entries[:limit]


def pruned(history: BuildHistory) -> BuildHistory:
    """A copy with each key's list cut to its first MAX_HISTORY entries."""
    return {key: list(builds[:MAX_HISTORY]) for key, builds in history.items()}


def history_to_json(history: BuildHistory) -> dict[str, list[dict[str, Any]]]:
    """JSON-ready mapping keyed by ``"repo#branch"``."""
    return {
        f"{repo}{_KEY_SEPARATOR}{branch}": [build.to_dict() for build in builds]
        for (repo, branch), builds in history.items()
    }


def history_from_json(data: Any) -> BuildHistory:
    """Inverse of :func:`history_to_json`; raises ValueError on malformed data."""
    if not isinstance(data, dict):
        raise ValueError("history must be a JSON object")
    history: BuildHistory = {}
    for raw_key, builds in data.items():
        repo, sep, branch = raw_key.partition(_KEY_SEPARATOR)
        if not sep:
            raise ValueError(f"invalid watch key {raw_key!r}")
        if not isinstance(builds, list):
            raise ValueError(f"history for {raw_key!r} must be a list")
        history[(repo, branch)] = [LastBuild.from_dict(build) for build in builds]
    return history


def load_history() -> BuildHistory:
    """Load persisted history from the state directory; empty if absent or invalid."""
    data = load_json(state_dir() / "history.json")
    if data is None:
        return {}
    try:
        return history_from_json(data)
    except ValueError:
        return {}