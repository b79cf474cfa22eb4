"""Views returned by the daemon's status, history, defaults and stats endpoints."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from buildwatch.events import RunCompleted, RunStarted, StatusChanged, WatchEvent
from buildwatch.states import RunConclusion, RunStatus

_MISSING = object()

_Check = Callable[[Any, str], Any]


def _object(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be a JSON object")
    return data


def _get(data: dict[str, Any], key: str, check: _Check, default: Any = _MISSING) -> Any:
    if key not in data:
        if default is _MISSING:
            raise ValueError(f"missing field {key!r}")
        return default
    return check(data[key], key)


def _nullable(check: _Check) -> _Check:
    return lambda value, key: None if value is None else check(value, key)


def _string(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _uint(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"field {key!r} must be a non-negative integer")
    return value


def _number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field {key!r} must be a number")
    return float(value)


def _boolean(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"field {key!r} must be a boolean")
    return value


def _list(value: Any, key: str) -> list[Any]:
    if not isinstance(value, list):
        raise ValueError(f"field {key!r} must be a list")
    return value


def _string_list(value: Any, key: str) -> list[str]:
    return [_string(item, key) for item in _list(value, key)]


def _run_status(value: Any, key: str) -> RunStatus:
    return RunStatus(_string(value, key))


def _run_conclusion(value: Any, key: str) -> RunConclusion:
    return RunConclusion(_string(value, key))


@dataclass
class ActiveRunView:
    """A run in progress for one watch."""

    run_id: int
    status: RunStatus
    workflow: str
    title: str
    event: str
    elapsed_secs: float | None = None
    attempt: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "workflow": self.workflow,
            "title": self.title,
            "event": self.event,
            "elapsed_secs": self.elapsed_secs,
            "attempt": self.attempt,
        }

    @classmethod
    def from_dict(cls, data: Any) -> ActiveRunView:
        d = _object(data, "active run")
        return cls(
            run_id=_get(d, "run_id", _uint),
            status=_get(d, "status", _run_status),
            workflow=_get(d, "workflow", _string),
            title=_get(d, "title", _string),
            event=_get(d, "event", _string),
            elapsed_secs=_get(d, "elapsed_secs", _nullable(_number), None),
            attempt=_get(d, "attempt", _uint, 1),
        )


@dataclass
class LastBuildView:
    """The last completed build of one workflow."""

    run_id: int
    conclusion: RunConclusion
    workflow: str
    title: str
    failing_steps: str | None = None
    age_secs: float | None = None
    attempt: int = 1
    failing_job_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "run_id": self.run_id,
            "conclusion": self.conclusion.value,
            "workflow": self.workflow,
            "title": self.title,
        }
        if self.failing_steps is not None:
            out["failing_steps"] = self.failing_steps
        if self.age_secs is not None:
            out["age_secs"] = self.age_secs
        out["attempt"] = self.attempt
        if self.failing_job_id is not None:
            out["failing_job_id"] = self.failing_job_id
        return out

    @classmethod
    def from_dict(cls, data: Any) -> LastBuildView:
        d = _object(data, "last build")
        return cls(
            run_id=_get(d, "run_id", _uint),
            conclusion=_get(d, "conclusion", _run_conclusion),
            workflow=_get(d, "workflow", _string),
            title=_get(d, "title", _string),
            failing_steps=_get(d, "failing_steps", _nullable(_string), None),
            age_secs=_get(d, "age_secs", _nullable(_number), None),
            attempt=_get(d, "attempt", _uint, 1),
            failing_job_id=_get(d, "failing_job_id", _nullable(_uint), None),
        )


@dataclass
class WatchStatus:
    """One watched repo/branch with its active runs and last builds."""

    repo: str
    branch: str
    active_runs: list[ActiveRunView] = field(default_factory=list)
    last_builds: list[LastBuildView] = field(default_factory=list)
    muted: bool = False

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "repo": self.repo,
            "branch": self.branch,
            "active_runs": [run.to_dict() for run in self.active_runs],
        }
        if self.last_builds:
            out["last_builds"] = [build.to_dict() for build in self.last_builds]
        if self.muted:
            out["muted"] = True
        return out

    @classmethod
    def from_dict(cls, data: Any) -> WatchStatus:
        d = _object(data, "watch status")
        return cls(
            repo=_get(d, "repo", _string),
            branch=_get(d, "branch", _string),
            active_runs=[
                ActiveRunView.from_dict(item) for item in _get(d, "active_runs", _list)
            ],
            last_builds=[
                LastBuildView.from_dict(item) for item in _get(d, "last_builds", _list, [])
            ],
            muted=_get(d, "muted", _boolean, False),
        )


@dataclass
class StatusResponse:
    """Full status snapshot: whether polling is paused and every watch."""

    paused: bool
    watches: list[WatchStatus] = field(default_factory=list)

    def _find_watch(self, repo: str, branch: str) -> WatchStatus | None:
        return next(
            (w for w in self.watches if w.repo == repo and w.branch == branch), None
        )

    def apply_event(self, event: WatchEvent) -> None:
        """Update the snapshot from a watch event.

        Only watches already in the snapshot are touched; new watches appear
        on the next full resync.
        """
        match event:
            case RunStarted(run=snap):
                watch = self._find_watch(snap.repo, snap.branch)
                if watch is None:
                    return
                if any(run.run_id == snap.run_id for run in watch.active_runs):
                    return
                watch.active_runs.append(
                    ActiveRunView(
                        run_id=snap.run_id,
                        status=snap.status,
                        workflow=snap.workflow,
                        title=snap.display_title(),
                        event=snap.event,
                        elapsed_secs=0.0,
                        attempt=snap.attempt,
                    )
                )
            case RunCompleted(run=snap):
                watch = self._find_watch(snap.repo, snap.branch)
                if watch is None:
                    return
                watch.active_runs = [r for r in watch.active_runs if r.run_id != snap.run_id]
                new_build = LastBuildView(
                    run_id=snap.run_id,
                    conclusion=event.conclusion,
                    workflow=snap.workflow,
                    title=snap.display_title(),
                    failing_steps=event.failing_steps,
                    age_secs=0.0,
                    attempt=snap.attempt,
                    failing_job_id=event.failing_job_id,
                )
                for index, existing in enumerate(watch.last_builds):
                    if existing.workflow == snap.workflow:
                        watch.last_builds[index] = new_build
                        break
                else:
                    watch.last_builds.append(new_build)
            case StatusChanged(run=snap, to=new_status):
                watch = self._find_watch(snap.repo, snap.branch)
                if watch is None:
                    return
                active = next(
                    (r for r in watch.active_runs if r.run_id == snap.run_id), None
                )
                if active is not None:
                    active.status = new_status
            case _:
                raise TypeError(f"not a watch event: {event!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "paused": self.paused,
            "watches": [watch.to_dict() for watch in self.watches],
        }

    @classmethod
    def from_dict(cls, data: Any) -> StatusResponse:
        """Build from a mapping; raises ValueError when it is malformed."""
        d = _object(data, "status response")
        return cls(
            paused=_get(d, "paused", _boolean),
            watches=[WatchStatus.from_dict(item) for item in _get(d, "watches", _list)],
        )


@dataclass
class HistoryEntryView:
    """One build history entry; ``repo`` is empty for per-repo listings."""

    id: int
    conclusion: str
    workflow: str
    title: str
    branch: str
    event: str
    duration_secs: int | None = None
    age_secs: int | None = None
    repo: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "conclusion": self.conclusion,
            "workflow": self.workflow,
            "title": self.title,
        }
        if self.repo:
            out["repo"] = self.repo
        out.update(
            branch=self.branch,
            event=self.event,
            duration_secs=self.duration_secs,
            age_secs=self.age_secs,
        )
        return out

    @classmethod
    def from_dict(cls, data: Any) -> HistoryEntryView:
        d = _object(data, "history entry")
        return cls(
            id=_get(d, "id", _uint),
            conclusion=_get(d, "conclusion", _string),
            workflow=_get(d, "workflow", _string),
            title=_get(d, "title", _string),
            branch=_get(d, "branch", _string),
            event=_get(d, "event", _string),
            duration_secs=_get(d, "duration_secs", _nullable(_uint), None),
            age_secs=_get(d, "age_secs", _nullable(_uint), None),
            repo=_get(d, "repo", _string, ""),
        )


@dataclass
class DefaultsConfig:
    """Global configuration defaults exchanged with clients."""

    default_branches: list[str]
    ignored_workflows: list[str]
    poll_aggression: str = ""
    auto_discover_branches: bool = False
    branch_filter: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "default_branches": list(self.default_branches),
            "ignored_workflows": list(self.ignored_workflows),
            "poll_aggression": self.poll_aggression,
            "auto_discover_branches": self.auto_discover_branches,
        }
        if self.branch_filter is not None:
            out["branch_filter"] = self.branch_filter
        return out

    @classmethod
    def from_dict(cls, data: Any) -> DefaultsConfig:
        d = _object(data, "defaults")
        return cls(
            default_branches=_get(d, "default_branches", _string_list),
            ignored_workflows=_get(d, "ignored_workflows", _string_list),
            poll_aggression=_get(d, "poll_aggression", _string, ""),
            auto_discover_branches=_get(d, "auto_discover_branches", _boolean, False),
            branch_filter=_get(d, "branch_filter", _nullable(_string), None),
        )


@dataclass
class StatsResponse:
    """Daemon statistics: uptime, poll intervals and rate-limit state."""

    uptime_secs: int = 0
    active_poll_secs: int = 0
    idle_poll_secs: int = 0
    poll_aggression: str = ""
    rate_remaining: int | None = None
    rate_limit: int | None = None
    rate_reset_mins: int | None = None
    dropped_events: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "uptime_secs": self.uptime_secs,
            "active_poll_secs": self.active_poll_secs,
            "idle_poll_secs": self.idle_poll_secs,
            "poll_aggression": self.poll_aggression,
            "rate_remaining": self.rate_remaining,
            "rate_limit": self.rate_limit,
            "rate_reset_mins": self.rate_reset_mins,
            "dropped_events": self.dropped_events,
        }

    @classmethod
    def from_dict(cls, data: Any) -> StatsResponse:
        d = _object(data, "stats")
        return cls(
            uptime_secs=_get(d, "uptime_secs", _uint),
            active_poll_secs=_get(d, "active_poll_secs", _uint),
            idle_poll_secs=_get(d, "idle_poll_secs", _uint),
            poll_aggression=_get(d, "poll_aggression", _string, ""),
            rate_remaining=_get(d, "rate_remaining", _nullable(_uint), None),
            rate_limit=_get(d, "rate_limit", _nullable(_uint), None),
            rate_reset_mins=_get(d, "rate_reset_mins", _nullable(_uint), None),
            dropped_events=_get(d, "dropped_events", _uint, 0),
        )