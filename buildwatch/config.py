"""Configuration model: watched repos, branches, notifications and quiet hours."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from buildwatch.levels import NotificationLevel, PollAggression

CURRENT_SCHEMA_VERSION = 1
"""Bump when making breaking changes to the config format."""

_EVENT_FIELDS = ("build_started", "build_success", "build_failure")
_U32_MAX = 0xFFFFFFFF
_MISSING = object()

_Check = Callable[[Any, str], Any]


def default_branches() -> list[str]:
    """Branches watched when a repo does not list its own."""
    return ["main"]


def _object(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be a JSON object")
    return data


def _get(data: dict[str, Any], key: str, check: _Check, default: Any = _MISSING) -> Any:
    if key not in data:
        if default is _MISSING:
            raise ValueError(f"missing field {key!r}")
        return default() if callable(default) else default
    return check(data[key], key)


def _nullable(check: _Check) -> _Check:
    return lambda value, key: None if value is None else check(value, key)


def _string(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _string_list(value: Any, key: str) -> list[str]:
    if not isinstance(value, list):
        raise ValueError(f"field {key!r} must be a list")
    return [_string(item, key) for item in value]


def _boolean(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"field {key!r} must be a boolean")
    return value


def _u32(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _U32_MAX:
        raise ValueError(f"field {key!r} must be an unsigned 32-bit integer")
    return value


def _level(value: Any, key: str) -> NotificationLevel:
    return NotificationLevel(_string(value, key))


def _aggression(value: Any, key: str) -> PollAggression:
    return PollAggression(_string(value, key))


@dataclass
class NotificationConfig:
    """Notification level for each build event."""

    build_started: NotificationLevel = NotificationLevel.NORMAL
    build_success: NotificationLevel = NotificationLevel.NORMAL
    build_failure: NotificationLevel = NotificationLevel.CRITICAL

    def is_all_off(self) -> bool:
        """True when every level is OFF, i.e. notifications are muted."""
        return all(getattr(self, name) is NotificationLevel.OFF for name in _EVENT_FIELDS)

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name).value for name in _EVENT_FIELDS}

    @classmethod
    def from_dict(cls, data: Any) -> NotificationConfig:
        d = _object(data, "notifications")
        defaults = cls()
        return cls(
            **{name: _get(d, name, _level, getattr(defaults, name)) for name in _EVENT_FIELDS}
        )


@dataclass
class NotificationOverrides:
    """Optional per-event levels; None inherits from the enclosing level."""

    build_started: NotificationLevel | None = None
    build_success: NotificationLevel | None = None
    build_failure: NotificationLevel | None = None

    def is_empty(self) -> bool:
        return all(getattr(self, name) is None for name in _EVENT_FIELDS)

    def to_dict(self) -> dict[str, Any]:
        return {
            name: getattr(self, name).value
            for name in _EVENT_FIELDS
            if getattr(self, name) is not None
        }

    @classmethod
    def from_dict(cls, data: Any) -> NotificationOverrides:
        d = _object(data, "notification overrides")
        return cls(**{name: _get(d, name, _nullable(_level), None) for name in _EVENT_FIELDS})


@dataclass
class QuietHours:
    """Daily local-time window ("HH:MM") in which notifications are suppressed.

    Overnight windows such as 22:00–08:00 are supported.
    """

    start: str
    end: str

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start, "end": self.end}

    @classmethod
    def from_dict(cls, data: Any) -> QuietHours:
        d = _object(data, "quiet_hours")
        return cls(start=_get(d, "start", _string), end=_get(d, "end", _string))


@dataclass
class BranchConfig:
    """Notification overrides for one branch."""

    notifications: NotificationOverrides = field(default_factory=NotificationOverrides)

    def to_dict(self) -> dict[str, Any]:
        if self.notifications.is_empty():
            return {}
        return {"notifications": self.notifications.to_dict()}

    @classmethod
    def from_dict(cls, data: Any) -> BranchConfig:
        d = _object(data, "branch config")
        return cls(
            notifications=_get(
                d, "notifications", lambda v, k: NotificationOverrides.from_dict(v),
                NotificationOverrides,
            )
        )


def _branch_map(value: Any, key: str) -> dict[str, BranchConfig]:
    d = _object(value, key)
    return {branch: BranchConfig.from_dict(cfg) for branch, cfg in d.items()}


@dataclass
class RepoConfig:
    """Settings for one watched repo; presence in the config means it is watched."""

    alias: str | None = None
    branches: list[str] = field(default_factory=list)
    workflows: list[str] = field(default_factory=list)
    notifications: NotificationOverrides = field(default_factory=NotificationOverrides)
    branch_notifications: dict[str, BranchConfig] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.alias is not None:
            out["alias"] = self.alias
        if self.branches:
            out["branches"] = list(self.branches)
        if self.workflows:
            out["workflows"] = list(self.workflows)
        if not self.notifications.is_empty():
            out["notifications"] = self.notifications.to_dict()
        if self.branch_notifications:
            out["branch_notifications"] = {
                branch: cfg.to_dict() for branch, cfg in self.branch_notifications.items()
            }
        return out

    @classmethod
    def from_dict(cls, data: Any) -> RepoConfig:
        """Build from a mapping; raises ValueError when it is malformed."""
        d = _object(data, "repo config")
        return cls(
            alias=_get(d, "alias", _nullable(_string), None),
            branches=_get(d, "branches", _string_list, list),
            workflows=_get(d, "workflows", _string_list, list),
            notifications=_get(
                d, "notifications", lambda v, k: NotificationOverrides.from_dict(v),
                NotificationOverrides,
            ),
            branch_notifications=_get(d, "branch_notifications", _branch_map, dict),
        )


def _repo_map(value: Any, key: str) -> dict[str, RepoConfig]:
    d = _object(value, key)
    return {repo: RepoConfig.from_dict(cfg) for repo, cfg in d.items()}


_HH_MM_PART = re.compile(r"\+?\d+")


def _parse_hh_mm(s: str) -> int | None:
    hours, sep, minutes = s.partition(":")
    if not sep or not _HH_MM_PART.fullmatch(hours) or not _HH_MM_PART.fullmatch(minutes):
        return None
    h, m = int(hours), int(minutes)
    if h > 23 or m > 59:
        return None
    return h * 60 + m


def is_in_quiet_hours_at(qh: QuietHours, cur_mins: int) -> bool:
    """Whether ``cur_mins`` (minutes since midnight) lies in the quiet window.

    An unparseable window never suppresses anything.
    """
    start = _parse_hh_mm(qh.start)
    end = _parse_hh_mm(qh.end)
    if start is None or end is None:
        return False
    if start <= end:
        return start <= cur_mins < end
    return cur_mins >= start or cur_mins < end


@dataclass
class Config:
    """The whole configuration file."""

    schema_version: int = CURRENT_SCHEMA_VERSION
    default_branches: list[str] = field(default_factory=default_branches)
    ignored_workflows: list[str] = field(default_factory=list)
    poll_aggression: PollAggression = PollAggression.MEDIUM
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    quiet_hours: QuietHours | None = None
    auto_discover_branches: bool = False
    branch_filter: str | None = None
    repos: dict[str, RepoConfig] = field(default_factory=dict)

    def watched_repos(self) -> list[str]:
        """Watched repo names, sorted."""
        return sorted(self.repos)

    def short_repo(self, repo: str) -> str:
        """Display name: the alias, else the bare name if unique, else "owner/repo"."""
        repo_cfg = self.repos.get(repo)
        if repo_cfg is not None and repo_cfg.alias is not None:
            return repo_cfg.alias
        if "/" not in repo:
            return repo
        name = repo.rsplit("/", 1)[1]
        ambiguous = any(
            other != repo and other.rsplit("/", 1)[-1] == name for other in self.repos
        )
        return repo if ambiguous else name

    def add_repos(self, repos: list[str]) -> None:
        """Watch ``repos``, keeping the settings of those already watched."""
        for repo in repos:
            self.repos.setdefault(repo, RepoConfig())

    def notifications_for(self, repo: str, branch: str) -> NotificationConfig:
        """Effective levels: branch overrides, then repo overrides, then globals."""
        layers: list[NotificationOverrides] = []
        repo_cfg = self.repos.get(repo)
        if repo_cfg is not None:
            branch_cfg = repo_cfg.branch_notifications.get(branch)
            if branch_cfg is not None:
                layers.append(branch_cfg.notifications)
            layers.append(repo_cfg.notifications)

        def resolve(name: str) -> NotificationLevel:
            return next(
                (getattr(layer, name) for layer in layers if getattr(layer, name) is not None),
                getattr(self.notifications, name),
            )

        return NotificationConfig(**{name: resolve(name) for name in _EVENT_FIELDS})

    def workflows_for(self, repo: str) -> list[str]:
        """Workflow filter for a repo; empty means all workflows."""
        repo_cfg = self.repos.get(repo)
        return list(repo_cfg.workflows) if repo_cfg is not None else []

    def branches_for(self, repo: str) -> list[str]:
        """Branches watched for a repo, falling back to the default branches."""
        repo_cfg = self.repos.get(repo)
        if repo_cfg is not None and repo_cfg.branches:
            return list(repo_cfg.branches)
        return list(self.default_branches)

    def is_in_quiet_hours(self) -> bool:
        """Whether the current local time falls in the configured quiet hours."""
        if self.quiet_hours is None:
            return False
        now = datetime.now()
        return is_in_quiet_hours_at(self.quiet_hours, now.hour * 60 + now.minute)

    def branch_filter_regex(self) -> re.Pattern[str] | None:
        """The compiled branch filter, or None if unset, empty or invalid."""
        if not self.branch_filter:
            return None
        try:
            return re.compile(self.branch_filter)
        except re.error:
            return None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "schema_version": self.schema_version,
            "default_branches": list(self.default_branches),
        }
        if self.ignored_workflows:
            out["ignored_workflows"] = list(self.ignored_workflows)
        out["poll_aggression"] = self.poll_aggression.value
        out["notifications"] = self.notifications.to_dict()
        if self.quiet_hours is not None:
            out["quiet_hours"] = self.quiet_hours.to_dict()
        out["auto_discover_branches"] = self.auto_discover_branches
        if self.branch_filter is not None:
            out["branch_filter"] = self.branch_filter
        out["repos"] = {repo: cfg.to_dict() for repo, cfg in self.repos.items()}
        return out

    @classmethod
    def from_dict(cls, data: Any) -> Config:
        """Strictly parse a config mapping; raises ValueError on any invalid field.

        Files without ``schema_version`` parse as version 0.
        """
        d = _object(data, "config")
        return cls(
            schema_version=_get(d, "schema_version", _u32, 0),
            default_branches=_get(d, "default_branches", _string_list, default_branches),
            ignored_workflows=_get(d, "ignored_workflows", _string_list, list),
            poll_aggression=_get(d, "poll_aggression", _aggression, PollAggression.MEDIUM),
            notifications=_get(
                d, "notifications", lambda v, k: NotificationConfig.from_dict(v),
                NotificationConfig,
            ),
            quiet_hours=_get(
                d, "quiet_hours", _nullable(lambda v, k: QuietHours.from_dict(v)), None
            ),
            auto_discover_branches=_get(d, "auto_discover_branches", _boolean, False),
            branch_filter=_get(d, "branch_filter", _nullable(_string), None),
            repos=_get(d, "repos", _repo_map, dict),
        )