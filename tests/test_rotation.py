from __future__ import annotations

from pathlib import Path

from hud_plugin import rotation
from hud_plugin.rotation import RotatingMessageList


def _loaded(tmp_path: Path, text: str, now: float = 0.0) -> RotatingMessageList:
    (tmp_path / rotation.RULES_FILE).write_text(text, encoding="utf-8")
    messages = RotatingMessageList(now=now)
    messages.load(tmp_path, now=now)
    return messages


def test_empty_list_returns_sentinel() -> None:
    messages = RotatingMessageList(now=0.0)
    assert messages.get_current(5.0, now=100.0) == rotation.NO_RULES_TEXT


def test_first_call_after_load_returns_first_message(tmp_path: Path) -> None:
    messages = _loaded(tmp_path, "one\ntwo\nthree\n", now=50.0)
    assert messages.get_current(5.0, now=50.0) == "one"
    assert messages.get_current(0.5, now=50.1) == "one"


def test_no_advance_within_interval(tmp_path: Path) -> None:
    messages = _loaded(tmp_path, "one\ntwo\n", now=0.0)
    for step in range(10):
        assert messages.get_current(5.0, now=step * 0.1) == "one"
    assert messages.index == 0


def test_advances_once_when_interval_elapses(tmp_path: Path) -> None:
    messages = _loaded(tmp_path, "one\ntwo\nthree\n", now=0.0)
    assert messages.get_current(5.0, now=5.0) == "two"
    assert messages.get_current(5.0, now=5.0) == "two"
    assert messages.get_current(5.0, now=9.9) == "two"
    assert messages.get_current(5.0, now=10.0) == "three"


def test_many_calls_across_intervals_advance_once_per_interval(tmp_path: Path) -> None:
    messages = _loaded(tmp_path, "\n".join(f"rule {idx}" for idx in range(20)), now=0.0)
    intervals = 4
    calls_per_interval = 25
    for interval in range(intervals):
        base = interval * 5.0
        for call in range(calls_per_interval):
            messages.get_current(5.0, now=base + 5.0 + call * 0.1)
    assert messages.index == intervals


def test_index_wraps(tmp_path: Path) -> None:
    messages = _loaded(tmp_path, "a\nb\n", now=0.0)
    assert messages.get_current(1.0, now=1.0) == "b"
    assert messages.get_current(1.0, now=2.0) == "a"


def test_load_skips_blank_lines_and_strips_markers(tmp_path: Path) -> None:
    messages = _loaded(tmp_path, "\n- No camping\n  * Be nice  \n-\nPlain rule\n")
    assert messages.messages == ["No camping", "Be nice", "Plain rule"]


def test_load_keeps_lines_starting_with_hash(tmp_path: Path) -> None:
    messages = _loaded(tmp_path, "#1 No teamkilling\n# 2 Respect staff\n")
    assert messages.messages == ["#1 No teamkilling", "# 2 Respect staff"]


def test_load_writes_defaults_when_file_missing(tmp_path: Path) -> None:
    config_dir = tmp_path / "cfg"
    messages = RotatingMessageList()
    messages.load(config_dir, now=0.0)

    written = (config_dir / rotation.RULES_FILE).read_text(encoding="utf-8")
    assert written.splitlines() == list(rotation.DEFAULT_RULES)
    assert messages.messages == list(rotation.DEFAULT_RULES)

    reloaded = RotatingMessageList()
    reloaded.load(config_dir, now=0.0)
    assert reloaded.messages == list(rotation.DEFAULT_RULES)


def test_reload_resets_index_and_timer(tmp_path: Path) -> None:
    messages = _loaded(tmp_path, "one\ntwo\nthree\n", now=0.0)
    messages.get_current(1.0, now=1.0)
    messages.get_current(1.0, now=2.0)
    assert messages.index == 2

    messages.load(tmp_path, now=100.0)
    assert messages.index == 0
    assert messages.get_current(1.0, now=100.5) == "one"
