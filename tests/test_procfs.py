"""Tests for /proc thread start time parsing."""

import os
import sys
import threading
from pathlib import Path

import pytest

from busy_java_threads.procfs import PROC_ROOT, clock_ticks, thread_start_ticks


def write_stat(root: Path, pid: int, tid: int, comm: str, starttime: int) -> None:
    task = root / str(pid) / "task" / str(tid)
    task.mkdir(parents=True)
    # Fields 3..21 are filler, field 22 is starttime
    filler = " ".join(["S"] + ["0"] * 18)
    (task / "stat").write_text(f"{tid} ({comm}) {filler} {starttime} 12345 67 0\n")


def test_reads_starttime(tmp_path: Path):
    write_stat(tmp_path, 100, 101, "java", 98765)
    assert thread_start_ticks(100, 101, proc_root=tmp_path) == 98765


def test_comm_with_spaces_and_parens(tmp_path: Path):
    write_stat(tmp_path, 100, 102, "GC Thread) (#0", 4242)
    assert thread_start_ticks(100, 102, proc_root=tmp_path) == 4242


def test_missing_thread(tmp_path: Path):
    assert thread_start_ticks(100, 999, proc_root=tmp_path) is None


def test_truncated_stat_line(tmp_path: Path):
    task = tmp_path / "1" / "task" / "1"
    task.mkdir(parents=True)
    (task / "stat").write_text("1 (init) S 0 1\n")
    assert thread_start_ticks(1, 1, proc_root=tmp_path) is None

    (task / "stat").write_text("garbage without parens")
    assert thread_start_ticks(1, 1, proc_root=tmp_path) is None


def test_clock_ticks_positive():
    assert clock_ticks() > 0


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="requires /proc")
def test_current_thread():
    assert PROC_ROOT.exists()
    ticks = thread_start_ticks(os.getpid(), threading.get_native_id())
    assert ticks is not None
    assert ticks >= 0
