from datetime import timedelta

import pytest

from buildwatch import format as fmt


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (timedelta(0), "0s"),
        (timedelta(seconds=42), "42s"),
        (timedelta(seconds=120), "2m"),
        (timedelta(seconds=150), "2m 30s"),
    ],
)
def test_duration_formatting(value, expected):
    assert fmt.duration(value) == expected


def test_duration_accepts_plain_seconds():
    assert fmt.duration(150) == "2m 30s"


@pytest.mark.parametrize(
    ("value", "expected"),
    [(0, "0s"), (59, "59s"), (60, "1m"), (90, "1m 30s")],
)
def test_seconds_formatting(value, expected):
    assert fmt.seconds(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [(30, "just now"), (300, "5m ago"), (7200, "2h ago"), (172800, "2d ago")],
)
def test_age_formatting(value, expected):
    assert fmt.age(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("in_progress", "in progress"),
        ("timed_out", "timed out"),
        ("startup_failure", "startup fail"),
        ("success", "success"),
        ("failure", "failure"),
        ("queued", "queued"),
    ],
)
def test_status_formatting(value, expected):
    assert fmt.status(value) == expected


@pytest.mark.parametrize(
    ("text", "max_len", "expected"),
    [
        ("hello", 10, "hello"),
        ("hello", 5, "hello"),
        ("hello!", 5, "hell…"),
        ("hello world!", 8, "hello w…"),
        ("", 5, ""),
        ("héllo", 3, "hé…"),
    ],
)
def test_truncate_behavior(text, max_len, expected):
    assert fmt.truncate(text, max_len) == expected


def test_truncate_result_never_exceeds_max():
    for n in range(1, 12):
        assert len(fmt.truncate("hello world!", n)) <= n