# mypy: ignore-errors
"""Tests for Plan rendering and execution and for read_directory."""

import os
from pathlib import Path

import pytest

import backedup
from backedup import (
    ANSI_GREEN,
    ANSI_RED,
    Config,
    DestinationNotWritableError,
    DirectoryUnreadableError,
    Logger,
    LogLevel,
    Period,
    Plan,
    SlotConfig,
    read_directory,
)


def _touch(directory: Path, *names: str) -> list[Path]:
    files = []
    for name in names:
        file = directory / name
        file.write_text(name)
        files.append(file)
    return files


def test_render_empty_plan() -> None:
    plan = Plan([], [], {})
    text = plan.render()
    assert text.startswith("Plan to:")
    assert "Do nothing: no valid timestamps" in text
    assert "Keep" not in text
    assert "Remove" not in text


def test_render_plan() -> None:
    plan = Plan(
        [Path("2020-02-01"), Path("2020-01-31")],
        [Path("2020-01-30")],
        {Path("2020-02-01"): [Period.YEARS, Period.MONTHS], Path("2020-01-31"): [Period.MONTHS]},
    )
    text = str(plan)
    assert "Do nothing" not in text
    assert "Keep 2 file(s) matching period(s)" in text
    assert "2020-02-01 -> (Years,Months)" in text
    assert "2020-01-31 -> (Months)" in text
    assert "Remove 1 file(s) not matching periods" in text
    assert "\t\t2020-01-30" in text
    assert "\033[" not in text


def test_render_plan_color() -> None:
    plan = Plan([Path("2020-02-01")], [Path("2020-01-30")], {Path("2020-02-01"): [Period.DAYS]})
    text = plan.render(color=True)
    assert ANSI_GREEN in text
    assert ANSI_RED in text


def test_read_directory(tmp_path: Path) -> None:
    _touch(tmp_path, "b", "a", "c")
    (tmp_path / "subdir").mkdir()
    assert read_directory(tmp_path) == [tmp_path / "a", tmp_path / "b", tmp_path / "c"]


@pytest.mark.parametrize("missing", ["does-not-exist", "file.txt"])
def test_read_directory_unreadable(tmp_path: Path, missing: str) -> None:
    (tmp_path / "file.txt").write_text("x")
    with pytest.raises(DirectoryUnreadableError) as exc:
        read_directory(tmp_path / missing)
    assert exc.value.path == tmp_path / missing
    assert "Cannot read directory" in str(exc.value)


def test_from_directory(tmp_path: Path) -> None:
    _touch(tmp_path, "2020-01-01.tar", "2020-01-02.tar", "2020-01-03.tar", "notes.txt")
    (tmp_path / "2020-01-04").mkdir()
    plan = Plan.from_directory(Config(SlotConfig(daily=2)), tmp_path)
    assert plan.directory == tmp_path
    assert plan.to_keep == [tmp_path / "2020-01-03.tar", tmp_path / "2020-01-02.tar"]
    assert plan.to_remove == [tmp_path / "2020-01-01.tar"]


def test_execute(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _touch(tmp_path, "2020-01-01.tar", "2020-01-02.tar", "2020-01-03.tar", "notes.txt")
    plan = Plan.from_directory(Config(SlotConfig(daily=1)), tmp_path)
    failed = plan.execute(Logger(LogLevel.INFO))
    assert failed == []
    assert sorted(p.name for p in tmp_path.iterdir()) == ["2020-01-03.tar", "notes.txt"]
    err = capsys.readouterr().err
    assert f"[INFO] Removed file '{tmp_path / '2020-01-01.tar'}'" in err
    assert f"[INFO] Removed file '{tmp_path / '2020-01-02.tar'}'" in err


def test_execute_nothing_to_remove(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _touch(tmp_path, "2020-01-01.tar")
    plan = Plan.from_directory(Config(SlotConfig(daily=1)), tmp_path)
    assert plan.execute(Logger(LogLevel.INFO)) == []
    assert "No file to remove" in capsys.readouterr().err
    assert (tmp_path / "2020-01-01.tar").exists()


def test_execute_continues_after_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    """A file that cannot be removed is logged, the remaining files are still removed."""
    protected, normal, kept = _touch(tmp_path, "2020-01-01.tar", "2020-01-02.tar", "2020-01-03.tar")
    original_unlink = backedup.Path.unlink

    def unlink_with_permission_error(self, *args, **kwargs):
        if self == protected:
            raise PermissionError("simulated permission error")
        return original_unlink(self, *args, **kwargs)

    monkeypatch.setattr(backedup.Path, "unlink", unlink_with_permission_error)

    plan = Plan.from_directory(Config(SlotConfig(daily=1)), tmp_path)
    failed = plan.execute(Logger(LogLevel.INFO))

    assert failed == [protected]
    assert protected.exists()
    assert not normal.exists()
    assert kept.exists()
    err = capsys.readouterr().err
    assert "[ERROR] Failed to remove file" in err
    assert "simulated permission error" in err
    assert f"Removed file '{normal}'" in err


def test_execute_not_writable(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    files = _touch(tmp_path, "2020-01-01.tar", "2020-01-02.tar")
    plan = Plan.from_directory(Config(SlotConfig(daily=1)), tmp_path)
    monkeypatch.setattr(backedup.os, "access", lambda path, mode: False)
    with pytest.raises(DestinationNotWritableError) as exc:
        plan.execute()
    assert exc.value.path == tmp_path
    assert all(f.exists() for f in files)


def test_execute_without_directory_skips_writable_check(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    old, new = _touch(tmp_path, "2020-01-01.tar", "2020-01-02.tar")
    plan = Plan.from_paths(Config(SlotConfig(daily=1)), [old, new])
    assert plan.directory is None
    monkeypatch.setattr(backedup.os, "access", lambda path, mode: False)
    assert plan.execute() == []
    assert not old.exists()
    assert new.exists()


def test_execute_file_vanished(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    old, _ = _touch(tmp_path, "2020-01-01.tar", "2020-01-02.tar")
    plan = Plan.from_directory(Config(SlotConfig(daily=1)), tmp_path)
    os.unlink(old)
    assert plan.execute(Logger(LogLevel.ERROR)) == [old]
    assert "[ERROR] Failed to remove file" in capsys.readouterr().err
