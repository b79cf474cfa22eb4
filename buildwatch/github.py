"""GitHub Actions run data: parsing, validation, titles and URLs."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from buildwatch.states import RunConclusion, RunStatus

GH_TIMEOUT_SECS = 30
GH_JSON_FIELDS = (
    "databaseId,status,conclusion,displayTitle,workflowName,headSha,event,headBranch,attempt"
)
GH_HISTORY_FIELDS = (
    "databaseId,conclusion,displayTitle,workflowName,headBranch,event,createdAt,updatedAt"
)
DEFAULT_BRANCH_LIMIT = 10
IN_PROGRESS_LIMIT = 100
DEFAULT_REPO_LIMIT = 20

_SHORT_SHA_LEN = 7


# -- Errors --


class GhError(Exception):
    """Failure talking to GitHub for a given repository."""

    def __init__(self, repo: str, message: str) -> None:
        super().__init__(f"{repo}: {message}")
        self.repo = repo

    def is_repo_not_found(self) -> bool:
        """True if the error means the repository does not exist or is inaccessible."""
        return False


class GhTimeoutError(GhError):
    """The ``gh`` command did not finish in time."""

    def __init__(self, repo: str, timeout_secs: int) -> None:
        super().__init__(repo, f"gh timed out after {timeout_secs}s")
        self.timeout_secs = timeout_secs


class GhSpawnError(GhError):
    """The ``gh`` command could not be started."""

    def __init__(self, repo: str, source: BaseException | str) -> None:
        super().__init__(repo, f"failed to run gh: {source}")
        self.source = source


class GhCliError(GhError):
    """The ``gh`` command exited unsuccessfully."""

    def __init__(self, repo: str, stderr: str) -> None:
        super().__init__(repo, f"gh error: {stderr}")
        self.stderr = stderr

    def is_repo_not_found(self) -> bool:
        return (
            "Could not resolve to a Repository" in self.stderr or "Not Found" in self.stderr
        )


class GhParseError(GhError):
    """The ``gh`` output was not the expected JSON."""

    def __init__(self, repo: str, source: BaseException | str) -> None:
        super().__init__(repo, f"parse error: {source}")
        self.source = source


class GhMissingFieldsError(GhError):
    """A run in the ``gh`` output lacked required fields."""

    def __init__(self, repo: str) -> None:
        super().__init__(repo, "missing fields in response")


# -- Helpers --


def short_sha(sha: str) -> str:
    """First seven characters of a commit SHA, or the whole string if shorter."""
    return sha[:_SHORT_SHA_LEN]


def display_title(event: str, title: str) -> str:
    """Prefix pull-request titles with "PR: "; other events use the title as-is."""
    if event.startswith("pull_request"):
        return f"PR: {title}"
    return title


def run_url(repo: str, run_id: int) -> str:
    """URL of a workflow run."""
    return f"https://github.com/{repo}/actions/runs/{run_id}"


def job_url(repo: str, run_id: int, job_id: int) -> str:
    """URL of a job within a workflow run."""
    return f"https://github.com/{repo}/actions/runs/{run_id}/job/{job_id}"


def actions_url(repo: str, branch: str) -> str:
    """URL of a repository's Actions tab filtered by branch."""
    return f"https://github.com/{repo}/actions?query=branch%3A{branch}"


def repo_url(repo: str) -> str:
    """URL of a repository."""
    return f"https://github.com/{repo}"


_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt ](\d{2}):(\d{2}):(\d{2})(?:\.\d+)?"
    r"(?:([Zz])|([+-])(\d{2}):(\d{2}))"
)


def parse_iso_epoch(s: str) -> int | None:
    """Parse an RFC 3339 timestamp to Unix seconds; None if invalid or before 1970."""
    match = _RFC3339.fullmatch(s)
    if match is None:
        return None
    year, month, day, hour, minute, second = (int(g) for g in match.group(1, 2, 3, 4, 5, 6))
    try:
        if match.group(7):
            tz = timezone.utc
        else:
            offset = timedelta(hours=int(match.group(9)), minutes=int(match.group(10)))
            if int(match.group(10)) > 59:
                return None
            tz = timezone(-offset if match.group(8) == "-" else offset)
        moment = datetime(year, month, day, hour, minute, second, tzinfo=tz)
    except ValueError:
        return None
    epoch = int(moment.timestamp())
    return epoch if epoch >= 0 else None


def validate_branch(branch: str) -> None:
    """Raise ValueError unless the branch name uses only safe characters."""
    if not branch or not all(c.isalnum() or c in "-_./" for c in branch):
        raise ValueError(
            f'Invalid branch name: "{branch}" — expected alphanumeric, hyphen, '
            "underscore, dot, or slash characters"
        )


def validate_repo(repo: str) -> None:
    """Raise ValueError unless the repo is "owner/repo" with safe characters."""
    parts = repo.split("/")
    if len(parts) != 2 or any(
        not part or not all(c.isalnum() or c in "-_." for c in part) for part in parts
    ):
        raise ValueError(
            f'Invalid repo format: "{repo}" — expected "owner/repo" with alphanumeric, '
            "hyphen, underscore, or dot characters"
        )


# -- Data --


@dataclass
class LastBuild:
    """Summary of the last completed build, persisted across restarts."""

    run_id: int
    conclusion: str
    workflow: str
    title: str
    head_sha: str = ""
    event: str = ""
    failing_steps: str | None = None
    failing_job_id: int | None = None
    completed_at: int | None = None
    duration_secs: int | None = None
    attempt: int = 1

    def display_title(self) -> str:
        """Title with a "PR: " prefix for pull-request events."""
        return display_title(self.event, self.title)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready mapping of all fields."""
        return {
            "run_id": self.run_id,
            "conclusion": self.conclusion,
            "workflow": self.workflow,
            "title": self.title,
            "head_sha": self.head_sha,
            "event": self.event,
            "failing_steps": self.failing_steps,
            "failing_job_id": self.failing_job_id,
            "completed_at": self.completed_at,
            "duration_secs": self.duration_secs,
            "attempt": self.attempt,
        }

    @classmethod
    def from_dict(cls, data: Any) -> LastBuild:
        """Build from a mapping; raises ValueError when required fields are missing."""
        if not isinstance(data, dict):
            raise ValueError("last build must be a JSON object")
        try:
            return cls(
                run_id=int(data["run_id"]),
                conclusion=str(data["conclusion"]),
                workflow=str(data["workflow"]),
                title=str(data["title"]),
                head_sha=data.get("head_sha") or "",
                event=data.get("event") or "",
                failing_steps=data.get("failing_steps"),
                failing_job_id=data.get("failing_job_id"),
                completed_at=data.get("completed_at"),
                duration_secs=data.get("duration_secs"),
                attempt=data.get("attempt", 1),
            )
        except KeyError as exc:
            raise ValueError(f"missing field {exc.args[0]!r}") from exc
        except (TypeError, ValueError) as exc:
            raise ValueError(f"invalid last build: {exc}") from exc


@dataclass
class RunInfo:
    """A GitHub Actions run parsed for internal use."""

    id: int
    status: RunStatus
    conclusion: str
    title: str
    workflow: str
    head_sha: str = ""
    event: str = ""
    head_branch: str = ""
    attempt: int = 1

    def short_sha(self) -> str:
        """Abbreviated head commit SHA."""
        return short_sha(self.head_sha)

    def display_title(self) -> str:
        """Title with a "PR: " prefix for pull-request events."""
        return display_title(self.event, self.title)

    def is_completed(self) -> bool:
        return self.status is RunStatus.COMPLETED

    def succeeded(self) -> bool:
        return self.conclusion == "success"

    def run_conclusion(self) -> RunConclusion:
        """The conclusion as a typed value; unrecognised strings give UNKNOWN."""
        return RunConclusion(self.conclusion)

    def url(self, repo: str) -> str:
        return run_url(repo, self.id)

    def to_last_build(self) -> LastBuild:
        """A LastBuild carrying this run's identity and conclusion."""
        return LastBuild(
            run_id=self.id,
            conclusion=self.conclusion,
            workflow=self.workflow,
            title=self.title,
            head_sha=self.head_sha,
            event=self.event,
            attempt=self.attempt,
        )


def _str_field(raw: dict[str, Any], key: str, repo: str) -> str:
    value = raw.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise GhParseError(repo, f"field {key!r} is not a string")
    return value


def _id_field(raw: dict[str, Any], key: str, repo: str) -> int | None:
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise GhParseError(repo, f"field {key!r} is not a non-negative integer")
    return value


def parse_run(raw: Any, repo: str) -> RunInfo:
    """Parse one run object from ``gh run list/view --json`` output."""
    if not isinstance(raw, dict):
        raise GhParseError(repo, "run is not a JSON object")
    run_id = _id_field(raw, "databaseId", repo)
    status = _str_field(raw, "status", repo)
    conclusion = _str_field(raw, "conclusion", repo)
    title = _str_field(raw, "displayTitle", repo)
    workflow = _str_field(raw, "workflowName", repo)
    head_sha = _str_field(raw, "headSha", repo)
    event = _str_field(raw, "event", repo)
    head_branch = _str_field(raw, "headBranch", repo)
    attempt = _id_field(raw, "attempt", repo)
    if run_id is None or not status or not title or not workflow:
        raise GhMissingFieldsError(repo)
    return RunInfo(
        id=run_id,
        status=RunStatus(status),
        conclusion=conclusion,
        title=title,
        workflow=workflow,
        head_sha=head_sha,
        event=event,
        head_branch=head_branch,
        attempt=1 if attempt is None else attempt,
    )


@dataclass
class FailureInfo:
    """Failing job/step names of a run."""

    steps: str
    first_job_id: int | None = None


def _job_id(job: dict[str, Any]) -> int | None:
    value = job.get("database_id", job.get("databaseId"))
    return value if isinstance(value, int) and not isinstance(value, bool) else None


def extract_failing_steps(jobs: list[dict[str, Any]]) -> FailureInfo | None:
    """Collect "job / step" names of failed jobs; None when no job failed."""
    failed = [job for job in jobs if job.get("conclusion") == "failure"]
    if not failed:
        return None

    def describe(job: dict[str, Any]) -> str:
        name = job.get("name", "")
        step = next(
            (s for s in job.get("steps", []) if s.get("conclusion") == "failure"), None
        )
        return name if step is None else f"{name} / {step.get('name', '')}"

    return FailureInfo(
        steps=", ".join(describe(job) for job in failed),
        first_job_id=_job_id(failed[0]),
    )


@dataclass
class HistoryEntry:
    """A build history entry with timestamps for duration and age."""

    id: int
    conclusion: str
    workflow: str
    title: str
    branch: str
    event: str
    created_at: str
    updated_at: str

    def display_title(self) -> str:
        return display_title(self.event, self.title)

    def duration_secs(self) -> int | None:
        """Seconds from creation to last update, if both timestamps are valid."""
        start = parse_iso_epoch(self.created_at)
        end = parse_iso_epoch(self.updated_at)
        if start is None or end is None:
            return None
        return max(0, end - start)

    def age_secs(self, now: int) -> int | None:
        """Seconds since creation at Unix time ``now``, never negative."""
        start = parse_iso_epoch(self.created_at)
        if start is None:
            return None
        return max(0, now - start)


def parse_history_entry(raw: dict[str, Any]) -> HistoryEntry | None:
    """Parse one history object; None when it has no run id."""
    run_id = raw.get("databaseId")
    if run_id is None:
        return None
    return HistoryEntry(
        id=run_id,
        conclusion=raw.get("conclusion") or "in_progress",
        workflow=raw.get("workflowName") or "",
        title=raw.get("displayTitle") or "",
        branch=raw.get("headBranch") or "",
        event=raw.get("event") or "",
        created_at=raw.get("createdAt") or "",
        updated_at=raw.get("updatedAt") or "",
    )


@dataclass
class RateLimit:
    """GitHub API rate limit for the core resource."""

    limit: int
    remaining: int
    reset: int
    used: int = field(default=0)

    @classmethod
    def from_dict(cls, data: Any) -> RateLimit:
        """Build from the ``.resources.core`` object; raises ValueError if malformed."""
        if not isinstance(data, dict):
            raise ValueError("rate limit must be a JSON object")
        try:
            values = {key: data[key] for key in ("limit", "remaining", "reset", "used")}
        except KeyError as exc:
            raise ValueError(f"missing field {exc.args[0]!r}") from exc
        for key, value in values.items():
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"field {key!r} is not a non-negative integer")
        return cls(**values)