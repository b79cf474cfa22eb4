import pytest

from buildwatch.events import RunCompleted, RunSnapshot, RunStarted, StatusChanged
from buildwatch.states import RunConclusion, RunStatus
from buildwatch.status import (
    ActiveRunView,
    DefaultsConfig,
    HistoryEntryView,
    LastBuildView,
    StatsResponse,
    StatusResponse,
    WatchStatus,
)


def snap(repo, branch, run_id, event="push"):
    return RunSnapshot(
        repo=repo,
        branch=branch,
        run_id=run_id,
        workflow="CI",
        title="Fix bug",
        event=event,
        status=RunStatus.QUEUED,
        attempt=1,
    )


def watch(repo, branch):
    return WatchStatus(repo=repo, branch=branch)


def status_with(watches):
    return StatusResponse(paused=False, watches=watches)


def active_run(run_id, workflow="CI"):
    return ActiveRunView(
        run_id=run_id,
        status=RunStatus.IN_PROGRESS,
        workflow=workflow,
        title="Fix bug",
        event="push",
        elapsed_secs=30.0,
        attempt=1,
    )


def test_run_started_inserts_active_run():
    status = status_with([watch("alice/app", "main")])
    status.apply_event(RunStarted(snap("alice/app", "main", 1)))

    runs = status.watches[0].active_runs
    assert len(runs) == 1
    assert runs[0].run_id == 1
    assert runs[0].status is RunStatus.QUEUED
    assert runs[0].workflow == "CI"
    assert runs[0].elapsed_secs == 0.0
    assert runs[0].title == "Fix bug"


def test_run_started_twice_keeps_one_entry():
    status = status_with([watch("alice/app", "main")])
    status.apply_event(RunStarted(snap("alice/app", "main", 1)))
    status.apply_event(RunStarted(snap("alice/app", "main", 1)))
    assert len(status.watches[0].active_runs) == 1


def test_run_started_pull_request_title():
    status = status_with([watch("alice/app", "main")])
    status.apply_event(RunStarted(snap("alice/app", "main", 3, event="pull_request")))
    assert status.watches[0].active_runs[0].title == "PR: Fix bug"


def test_run_completed_moves_to_last_build():
    w = watch("alice/app", "main")
    w.active_runs.append(active_run(7))
    status = status_with([w])

    status.apply_event(
        RunCompleted(
            run=snap("alice/app", "main", 7),
            conclusion=RunConclusion.SUCCESS,
            elapsed=35.0,
        )
    )

    assert status.watches[0].active_runs == []
    assert len(status.watches[0].last_builds) == 1
    lb = status.watches[0].last_builds[0]
    assert lb.run_id == 7
    assert lb.conclusion is RunConclusion.SUCCESS
    assert lb.age_secs == 0.0


def test_run_completed_replaces_build_of_same_workflow():
    w = watch("alice/app", "main")
    w.last_builds.append(
        LastBuildView(run_id=1, conclusion=RunConclusion.SUCCESS, workflow="CI", title="old")
    )
    w.last_builds.append(
        LastBuildView(run_id=2, conclusion=RunConclusion.SUCCESS, workflow="Deploy", title="d")
    )
    status = status_with([w])

    status.apply_event(
        RunCompleted(
            run=snap("alice/app", "main", 9),
            conclusion=RunConclusion.FAILURE,
            failing_steps="Build / Run tests",
            failing_job_id=42,
        )
    )

    builds = status.watches[0].last_builds
    assert [b.run_id for b in builds] == [9, 2]
    assert builds[0].conclusion is RunConclusion.FAILURE
    assert builds[0].failing_steps == "Build / Run tests"
    assert builds[0].failing_job_id == 42


def test_status_changed_updates_active_run():
    w = watch("alice/app", "main")
    w.active_runs.append(active_run(5))
    status = status_with([w])
    status.apply_event(
        StatusChanged(
            run=snap("alice/app", "main", 5),
            from_=RunStatus.IN_PROGRESS,
            to=RunStatus.COMPLETED,
        )
    )
    assert status.watches[0].active_runs[0].status is RunStatus.COMPLETED


def test_unknown_watch_is_ignored():
    status = status_with([watch("alice/app", "main")])
    status.apply_event(RunStarted(snap("other/repo", "main", 1)))
    assert status.watches[0].active_runs == []


def test_apply_event_rejects_non_event():
    status = status_with([])
    with pytest.raises(TypeError):
        status.apply_event("not an event")


def test_to_dict_omits_empty_last_builds_and_unmuted():
    status = status_with([watch("alice/app", "main")])
    assert status.to_dict() == {
        "paused": False,
        "watches": [{"repo": "alice/app", "branch": "main", "active_runs": []}],
    }


def test_last_build_view_omits_missing_optionals():
    lb = LastBuildView(run_id=1, conclusion=RunConclusion.CANCELLED, workflow="CI", title="t")
    assert lb.to_dict() == {
        "run_id": 1,
        "conclusion": "cancelled",
        "workflow": "CI",
        "title": "t",
        "attempt": 1,
    }


def test_status_response_round_trip():
    w = watch("alice/app", "main")
    w.active_runs.append(active_run(5))
    w.last_builds.append(
        LastBuildView(
            run_id=4,
            conclusion=RunConclusion.TIMED_OUT,
            workflow="CI",
            title="t",
            failing_steps="Test",
            age_secs=12.5,
            attempt=2,
            failing_job_id=8,
        )
    )
    w.muted = True
    status = StatusResponse(paused=True, watches=[w])
    assert StatusResponse.from_dict(status.to_dict()) == status


def test_from_dict_unknown_status_maps_to_unknown():
    data = {
        "paused": False,
        "watches": [
            {
                "repo": "alice/app",
                "branch": "main",
                "active_runs": [
                    {
                        "run_id": 1,
                        "status": "some_future_status",
                        "workflow": "CI",
                        "title": "t",
                        "event": "push",
                        "elapsed_secs": None,
                    }
                ],
            }
        ],
    }
    parsed = StatusResponse.from_dict(data)
    run = parsed.watches[0].active_runs[0]
    assert run.status is RunStatus.UNKNOWN
    assert run.attempt == 1
    assert parsed.watches[0].muted is False


def test_from_dict_missing_field_raises():
    with pytest.raises(ValueError):
        StatusResponse.from_dict({"watches": []})


def test_history_entry_view_repo_only_when_set():
    entry = HistoryEntryView(
        id=1, conclusion="success", workflow="CI", title="t", branch="main", event="push"
    )
    assert "repo" not in entry.to_dict()
    entry.repo = "alice/app"
    assert entry.to_dict()["repo"] == "alice/app"
    assert HistoryEntryView.from_dict(entry.to_dict()) == entry


def test_stats_response_defaults_when_fields_missing():
    stats = StatsResponse.from_dict(
        {"uptime_secs": 10, "active_poll_secs": 15, "idle_poll_secs": 30}
    )
    assert stats.dropped_events == 0
    assert stats.poll_aggression == ""
    assert stats.rate_remaining is None


def test_defaults_config_round_trip_and_skip():
    defaults = DefaultsConfig(default_branches=["main"], ignored_workflows=[])
    assert "branch_filter" not in defaults.to_dict()
    defaults.branch_filter = "^release/"
    assert DefaultsConfig.from_dict(defaults.to_dict()) == defaults