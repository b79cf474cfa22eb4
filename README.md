# buildwatch

Building blocks for a tool that watches GitHub Actions builds: typed run
records, watch events with an in-process event bus, status views that follow
those events, bounded build history, a configuration model with notification
overrides, and poll intervals that keep within a share of the GitHub API
rate limit. It has no dependencies outside the standard library.

## Modules

- `buildwatch.github` – parses run objects as printed by
  `gh run list/view --json` (`parse_run`, `parse_history_entry`) into
  `RunInfo` and `HistoryEntry`; `LastBuild` and `RateLimit` records;
  `extract_failing_steps` for a run's jobs; `validate_repo` and
  `validate_branch` (they raise `ValueError`); `parse_iso_epoch`; URL helpers
  `run_url`, `job_url`, `actions_url` and `repo_url`; and the `GhError` family
  of exceptions (`GhTimeoutError`, `GhSpawnError`, `GhCliError`,
  `GhParseError`, `GhMissingFieldsError`) with `is_repo_not_found()`.
- `buildwatch.states` – the `RunStatus` and `RunConclusion` enums; unknown
  strings map to `UNKNOWN`.
- `buildwatch.events` – `RunStarted`, `RunCompleted` and `StatusChanged`
  events carrying a `RunSnapshot`, JSON conversion with `event_to_json` and
  `event_from_json`, and an `EventBus` whose `subscribe()` returns a
  `Subscription` with `try_recv()`, async `recv()` and `close()`. Events
  emitted with no subscriber are counted by `dropped_count()`.
- `buildwatch.status` – `StatusResponse`, `WatchStatus`, `ActiveRunView`,
  `LastBuildView`, `HistoryEntryView`, `DefaultsConfig` and `StatsResponse`,
  each with `to_dict()`/`from_dict()`. `StatusResponse.apply_event` updates a
  snapshot from a watch event.
- `buildwatch.config` – `Config` with `RepoConfig`, `BranchConfig`,
  `NotificationConfig`, `NotificationOverrides` and `QuietHours`.
  `Config.notifications_for` resolves levels branch → repo → global;
  `branches_for`, `workflows_for`, `short_repo`, `watched_repos`,
  `add_repos`, `is_in_quiet_hours` and `branch_filter_regex` answer the
  usual questions. `Config.from_dict` is strict and raises `ValueError`.
- `buildwatch.levels` – `NotificationLevel` and `PollAggression`
  (case-insensitive, with `next()`/`prev()`), and `unix_now()`.
- `buildwatch.ratelimit` – `compute_intervals`, returning
  `(active_secs, idle_secs)`; never below 15 and 30 seconds.
- `buildwatch.history` – `push_build` (keeps at most 20 per watch),
  `history_for`, `history_all`, `pruned`, `history_to_json`,
  `history_from_json` and `load_history`.
- `buildwatch.jsonstore` – `save_json` / `save_json_async` write through a
  synced draft file and keep the previous file as `.json.bak`; `load_json`
  falls back to that backup. Failures raise `PersistError`.
- `buildwatch.dirs` – `state_dir()` and `config_dir()`.
- `buildwatch.format` – `seconds`, `duration`, `age`, `status` and
  `truncate` for display.

## Install

    pip install .

## Example

```python
import time

from buildwatch.config import Config
from buildwatch.events import EventBus, RunStarted, snapshot_from_run
from buildwatch.format import seconds, status
from buildwatch.github import parse_run
from buildwatch.levels import PollAggression
from buildwatch.ratelimit import compute_intervals

run = parse_run(
    {
        "databaseId": 123,
        "status": "in_progress",
        "conclusion": "",
        "displayTitle": "Fix login bug",
        "workflowName": "CI",
        "event": "pull_request",
    },
    "alice/app",
)
print(run.display_title(), status(run.status.value), run.url("alice/app"))
# PR: Fix login bug in progress https://github.com/alice/app/actions/runs/123

bus = EventBus()
with bus.subscribe() as sub:
    bus.emit(RunStarted(snapshot_from_run(run, "alice/app", "main")))
    print(sub.try_recv())

config = Config()
print(config.notifications_for("alice/app", "main").build_failure)  # critical

print(compute_intervals(None, 1, int(time.time()), PollAggression.MEDIUM, 0))  # (30, 60)
print(seconds(150))  # 2m 30s
```

A configuration can be stored with `save_json(path, config)` and read back
with `Config.from_dict(load_json(path))`.

## Files

`state_dir()` is `~/.local/state/build-watcher` on Linux and
`~/Library/Application Support/build-watcher/state` on macOS; `config_dir()`
is `~/.config/build-watcher` and
`~/Library/Application Support/build-watcher/config` respectively. The
`STATE_DIRECTORY` and `CONFIGURATION_DIRECTORY` environment variables
override them. Both are created on first use. `load_history()` reads
`history.json` from the state directory.

## What it does not do

This package does not talk to GitHub: it parses the JSON that `gh` prints,
but it never runs `gh` or any other program, and it has no polling loop.
There is no daemon, HTTP server, terminal interface or command-line entry
point. Nothing loads the configuration file from `config_dir()` or saves
watch state for you; use `jsonstore` with the `to_dict`/`from_dict`
methods for that.

## Tests

    pip install .[test]
    pytest