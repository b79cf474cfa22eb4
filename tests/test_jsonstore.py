import json

import pytest

from buildwatch.jsonstore import (
    PersistError,
    load_json,
    save_json,
    save_json_async,
    try_parse_file,
)


def test_save_load_roundtrip(tmp_path):
    path = tmp_path / "config.json"
    config = {
        "default_branches": ["main"],
        "repos": {"alice/app": {"branches": ["main", "release"]}},
    }
    save_json(path, config)
    loaded = load_json(path)
    assert len(loaded["repos"]) == 1
    assert loaded["repos"]["alice/app"]["branches"] == ["main", "release"]


def test_load_falls_back_to_backup(tmp_path):
    path = tmp_path / "config.json"
    bak = tmp_path / "config.json.bak"
    bak.write_text(json.dumps({"default_branches": ["main"]}, indent=2))
    path.write_text("not json")

    loaded = load_json(path)
    assert loaded["default_branches"] == ["main"]
    # Primary is restored from the backup.
    assert json.loads(path.read_text()) == {"default_branches": ["main"]}


def test_load_returns_none_when_both_missing(tmp_path):
    assert load_json(tmp_path / "config.json") is None


def test_save_creates_backup_of_previous(tmp_path):
    path = tmp_path / "data.json"
    bak = tmp_path / "data.json.bak"

    save_json(path, ["v1"])
    assert not bak.exists()

    save_json(path, ["v2"])
    assert bak.exists()
    assert load_json(bak) == ["v1"]
    assert load_json(path) == ["v2"]


def test_save_no_draft_left_behind(tmp_path):
    path = tmp_path / "clean.json"
    draft = tmp_path / "clean.json.draft"
    save_json(path, "hello")
    assert path.exists()
    assert not draft.exists()


def test_save_writes_pretty_json(tmp_path):
    path = tmp_path / "pretty.json"
    save_json(path, {"a": [1]})
    assert path.read_text() == '{\n  "a": [\n    1\n  ]\n}'


def test_try_parse_file_returns_none_for_missing_file(tmp_path):
    assert try_parse_file(tmp_path / "bw-nonexistent-99999.json") is None


def test_try_parse_file_returns_none_for_corrupt_json(tmp_path):
    path = tmp_path / "corrupt.json"
    path.write_text("{ this is not json }")
    assert try_parse_file(path) is None


def test_save_unserializable_raises_and_keeps_primary(tmp_path):
    path = tmp_path / "keep.json"
    save_json(path, {"ok": True})
    with pytest.raises(PersistError):
        save_json(path, {"bad": object()})
    assert load_json(path) == {"ok": True}


def test_save_uses_to_dict_of_objects(tmp_path):
    class Item:
        def to_dict(self):
            return {"name": "x"}

    path = tmp_path / "item.json"
    save_json(path, [Item()])
    assert load_json(path) == [{"name": "x"}]


def test_save_into_missing_directory_raises(tmp_path):
    with pytest.raises(PersistError):
        save_json(tmp_path / "missing" / "file.json", [1])


@pytest.mark.asyncio
async def test_save_json_async_writes_file(tmp_path):
    path = tmp_path / "async.json"
    await save_json_async(path, {"k": 1})
    assert load_json(path) == {"k": 1}


@pytest.mark.asyncio
async def test_save_json_async_propagates_persist_error(tmp_path):
    with pytest.raises(PersistError):
        await save_json_async(tmp_path / "x.json", {"bad": object()})