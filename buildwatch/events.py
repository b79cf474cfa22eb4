"""Watch events emitted by the poller and a broadcast bus to deliver them."""

from __future__ import annotations

import asyncio
import json
import threading
import weakref
from collections import deque
from dataclasses import dataclass
from typing import Any, Union

from buildwatch.github import RunInfo, display_title, run_url
from buildwatch.states import RunConclusion, RunStatus

CHANNEL_CAPACITY = 256


@dataclass
class RunSnapshot:
    """Identity and status of a run at the moment an event was produced."""

    repo: str
    branch: str
    run_id: int
    workflow: str
    title: str
    event: str
    status: RunStatus
    attempt: int = 1

    def url(self) -> str:
        return run_url(self.repo, self.run_id)

    def display_title(self) -> str:
        return display_title(self.event, self.title)

    def notification_group(self) -> str:
        """Key grouping notifications for the same repo, branch and workflow."""
        return f"{self.repo}#{self.branch}#{self.workflow}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "repo": self.repo,
            "branch": self.branch,
            "run_id": self.run_id,
            "workflow": self.workflow,
            "title": self.title,
            "event": self.event,
            "status": self.status.value,
            "attempt": self.attempt,
        }

    @classmethod
    def from_dict(cls, data: Any) -> RunSnapshot:
        """Build from a mapping; raises ValueError when it is malformed."""
        if not isinstance(data, dict):
            raise ValueError("run snapshot must be a JSON object")
        try:
            fields = {
                key: data[key] for key in ("repo", "branch", "workflow", "title", "event")
            }
            run_id = data["run_id"]
            status = data["status"]
        except KeyError as exc:
            raise ValueError(f"missing field {exc.args[0]!r}") from exc
        for key, value in fields.items():
            if not isinstance(value, str):
                raise ValueError(f"field {key!r} must be a string")
        if not _is_uint(run_id):
            raise ValueError("field 'run_id' must be a non-negative integer")
        if not isinstance(status, str):
            raise ValueError("field 'status' must be a string")
        attempt = data.get("attempt", 1)
        if not _is_uint(attempt):
            raise ValueError("field 'attempt' must be a non-negative integer")
        return cls(run_id=run_id, status=RunStatus(status), attempt=attempt, **fields)


def _is_uint(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def snapshot_from_run(run: RunInfo, repo: str, branch: str) -> RunSnapshot:
    """Snapshot of ``run`` as seen on ``repo``/``branch``."""
    return RunSnapshot(
        repo=repo,
        branch=branch,
        run_id=run.id,
        workflow=run.workflow,
        title=run.title,
        event=run.event,
        status=run.status,
        attempt=run.attempt,
    )


@dataclass
class RunStarted:
    """A new build was detected."""

    run: RunSnapshot


@dataclass
class RunCompleted:
    """A build finished.

    ``elapsed`` is the seconds from first sighting to completion, or None for
    runs that were already complete when first seen.
    """

    run: RunSnapshot
    conclusion: RunConclusion
    elapsed: float | None = None
    failing_steps: str | None = None
    failing_job_id: int | None = None


@dataclass
class StatusChanged:
    """A build's status changed, e.g. from queued to in progress."""

    run: RunSnapshot
    from_: RunStatus
    to: RunStatus


WatchEvent = Union[RunStarted, RunCompleted, StatusChanged]


def event_to_json(event: WatchEvent) -> dict[str, Any]:
    """JSON-ready form, tagged by the event kind."""
    match event:
        case RunStarted(run=run):
            return {"RunStarted": run.to_dict()}
        case RunCompleted():
            body: dict[str, Any] = {
                "run": event.run.to_dict(),
                "conclusion": event.conclusion.value,
                "elapsed": event.elapsed,
                "failing_steps": event.failing_steps,
            }
            if event.failing_job_id is not None:
                body["failing_job_id"] = event.failing_job_id
            return {"RunCompleted": body}
        case StatusChanged():
            return {
                "StatusChanged": {
                    "run": event.run.to_dict(),
                    "from": event.from_.value,
                    "to": event.to.value,
                }
            }
    raise TypeError(f"not a watch event: {event!r}")


def _body(data: dict[str, Any], key: str) -> Any:
    try:
        return data[key]
    except KeyError as exc:
        raise ValueError(f"missing field {key!r}") from exc


def _str_value(body: dict[str, Any], key: str) -> str:
    value = _body(body, key)
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def event_from_json(data: Any) -> WatchEvent:
    """Inverse of :func:`event_to_json`; also accepts a JSON string."""
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict) or len(data) != 1:
        raise ValueError("watch event must be an object with exactly one key")
    ((kind, body),) = data.items()

    if kind == "RunStarted":
        return RunStarted(RunSnapshot.from_dict(body))

    if not isinstance(body, dict):
        raise ValueError(f"{kind} body must be a JSON object")

    if kind == "RunCompleted":
        elapsed = body.get("elapsed")
        if elapsed is not None:
            if isinstance(elapsed, bool) or not isinstance(elapsed, (int, float)):
                raise ValueError("field 'elapsed' must be a number")
            elapsed = float(elapsed)
        failing_steps = body.get("failing_steps")
        if failing_steps is not None and not isinstance(failing_steps, str):
            raise ValueError("field 'failing_steps' must be a string")
        failing_job_id = body.get("failing_job_id")
        if failing_job_id is not None and not _is_uint(failing_job_id):
            raise ValueError("field 'failing_job_id' must be a non-negative integer")
        return RunCompleted(
            run=RunSnapshot.from_dict(_body(body, "run")),
            conclusion=RunConclusion(_str_value(body, "conclusion")),
            elapsed=elapsed,
            failing_steps=failing_steps,
            failing_job_id=failing_job_id,
        )

    if kind == "StatusChanged":
        return StatusChanged(
            run=RunSnapshot.from_dict(_body(body, "run")),
            from_=RunStatus(_str_value(body, "from")),
            to=RunStatus(_str_value(body, "to")),
        )

    raise ValueError(f"unknown watch event kind {kind!r}")


class Subscription:
    """A receiver of events from an :class:`EventBus`.

    Holds at most ``CHANNEL_CAPACITY`` pending events; when it falls behind, the
    oldest pending events are discarded and counted in ``lagged``.
    """

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self._queue: deque[WatchEvent] = deque()
        self._ready = asyncio.Event()
        self._closed = False
        self.lagged = 0

    def _deliver(self, event: WatchEvent) -> None:
        if len(self._queue) >= CHANNEL_CAPACITY:
            self._queue.popleft()
            self.lagged += 1
        self._queue.append(event)
        self._ready.set()

    def try_recv(self) -> WatchEvent | None:
        """The next pending event, or None if there is none."""
        return self._queue.popleft() if self._queue else None

    async def recv(self) -> WatchEvent:
        """Wait for the next event; raises EOFError once closed and drained."""
        while True:
            if self._queue:
                return self._queue.popleft()
            if self._closed:
                raise EOFError("subscription closed")
            self._ready.clear()
            await self._ready.wait()

    def close(self) -> None:
        """Stop receiving events; already pending ones can still be read."""
        if not self._closed:
            self._closed = True
            self._bus._unsubscribe(self)
            self._ready.set()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class EventBus:
    """Broadcasts watch events to every live subscription."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: weakref.WeakSet[Subscription] = weakref.WeakSet()
        self._dropped = 0

    def emit(self, event: WatchEvent) -> None:
        """Deliver ``event`` to all subscribers; counted as dropped if there are none."""
        with self._lock:
            subscribers = list(self._subscribers)
            if not subscribers:
                self._dropped += 1
                return
        for subscriber in subscribers:
            subscriber._deliver(event)

    def subscribe(self) -> Subscription:
        """A new subscription receiving events emitted from now on."""
        subscription = Subscription(self)
        with self._lock:
            self._subscribers.add(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.discard(subscription)

    def dropped_count(self) -> int:
        """Number of events emitted while nobody was subscribed."""
        with self._lock:
            return self._dropped