import json

import pytest

from buildwatch.dirs import state_dir
from buildwatch.github import LastBuild
from buildwatch.history import (
    MAX_HISTORY,
    history_all,
    history_for,
    history_from_json,
    history_to_json,
    load_history,
    pruned,
    push_build,
)


def make_build(run_id, completed_at):
    return LastBuild(
        run_id=run_id,
        conclusion="success",
        workflow="CI",
        title="test",
        event="push",
        completed_at=completed_at,
    )


def test_push_build_prepends_and_trims():
    hist = {}
    key = ("alice/app", "main")
    for i in range(MAX_HISTORY + 1):
        push_build(hist, key, make_build(i, i))
    builds = hist[key]
    assert len(builds) == MAX_HISTORY
    assert builds[0].run_id == MAX_HISTORY
    assert builds[-1].run_id == 1


def test_history_for_branch_filter():
    hist = {}
    push_build(hist, ("alice/app", "main"), make_build(1, 100))
    push_build(hist, ("alice/app", "develop"), make_build(2, 200))
    results = history_for(hist, "alice/app", "main", 10)
    assert len(results) == 1
    assert results[0][0] == "main"
    assert results[0][1].run_id == 1


def test_history_for_cross_branch_sorted_newest_first():
    hist = {}
    push_build(hist, ("alice/app", "main"), make_build(1, 100))
    push_build(hist, ("alice/app", "develop"), make_build(2, 200))
    results = history_for(hist, "alice/app", None, 10)
    assert [b.run_id for _, b in results] == [2, 1]


def test_history_for_none_completed_at_sorts_last():
    hist = {}
    push_build(hist, ("alice/app", "main"), make_build(1, None))
    push_build(hist, ("alice/app", "main"), make_build(2, 50))
    results = history_for(hist, "alice/app", None, 10)
    assert [b.run_id for _, b in results] == [2, 1]


def test_history_for_respects_limit():
    hist = {}
    for i in range(10):
        push_build(hist, ("alice/app", "main"), make_build(i, i))
    assert len(history_for(hist, "alice/app", None, 3)) == 3


def test_history_for_different_repo_excluded():
    hist = {}
    push_build(hist, ("alice/app", "main"), make_build(1, 100))
    push_build(hist, ("bob/other", "main"), make_build(2, 200))
    results = history_for(hist, "alice/app", None, 10)
    assert len(results) == 1
    assert results[0][1].run_id == 1


def test_history_all_across_repos():
    hist = {}
    push_build(hist, ("alice/app", "main"), make_build(1, 100))
    push_build(hist, ("bob/other", "dev"), make_build(2, 200))
    results = history_all(hist, 10)
    assert [(r, b, lb.run_id) for r, b, lb in results] == [
        ("bob/other", "dev", 2),
        ("alice/app", "main", 1),
    ]
    assert len(history_all(hist, 1)) == 1


def test_pruned_caps_at_max_history():
    key = ("alice/app", "main")
    hist = {key: [make_build(i, i) for i in range(30)]}
    result = pruned(hist)
    assert len(result[key]) == MAX_HISTORY
    assert result[key][0].run_id == 0
    assert len(hist[key]) == 30


def test_json_round_trip():
    hist = {}
    push_build(hist, ("alice/app", "main"), make_build(1, 100))
    push_build(hist, ("alice/app", "feature/x"), make_build(2, 200))
    data = json.loads(json.dumps(history_to_json(hist)))
    assert set(data) == {"alice/app#main", "alice/app#feature/x"}
    assert history_from_json(data) == hist


def test_from_json_rejects_bad_key():
    with pytest.raises(ValueError):
        history_from_json({"no-separator": []})


@pytest.fixture
def state_directory(tmp_path, monkeypatch):
    monkeypatch.setenv("STATE_DIRECTORY", str(tmp_path))
    state_dir.cache_clear()
    yield tmp_path
    state_dir.cache_clear()


def test_load_history_reads_state_file(state_directory):
    hist = {("alice/app", "main"): [make_build(7, 70)]}
    (state_directory / "history.json").write_text(json.dumps(history_to_json(hist)))
    assert load_history() == hist


def test_load_history_missing_is_empty(state_directory):
    assert load_history() == {}


def test_load_history_malformed_is_empty(state_directory):
    (state_directory / "history.json").write_text(json.dumps({"bad": [{"run_id": 1}]}))
    assert load_history() == {}