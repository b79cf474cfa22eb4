"""Locations of the state and configuration directories."""

from __future__ import annotations

import functools
import logging
import os
import sys
from pathlib import Path

log = logging.getLogger(__name__)

_APP = "build-watcher"


def _home_dir() -> str:
    home = os.environ.get("HOME")
    if home is None:
        log.warning("HOME is not set; falling back to /tmp for state/config directories")
        return "/tmp"
    return home


def _default_state_dir() -> str:
    if sys.platform == "darwin":
        return f"{_home_dir()}/Library/Application Support/{_APP}/state"
    return f"{_home_dir()}/.local/state/{_APP}"


def _default_config_dir() -> str:
    if sys.platform == "darwin":
        return f"{_home_dir()}/Library/Application Support/{_APP}/config"
    return f"{_home_dir()}/.config/{_APP}"


def _init_dir(directory: Path) -> None:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        log.error("Failed to create directory %s: %s", directory, exc)


@functools.cache
def state_dir() -> Path:
    """Directory for persisted runtime state, created on first use."""
    directory = Path(os.environ.get("STATE_DIRECTORY") or _default_state_dir())
    _init_dir(directory)
    return directory


@functools.cache
def config_dir() -> Path:
    """Directory for the configuration file, created on first use."""
    directory = Path(os.environ.get("CONFIGURATION_DIRECTORY") or _default_config_dir())
    _init_dir(directory)
    return directory