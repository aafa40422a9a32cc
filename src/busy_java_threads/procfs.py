"""Thread start times from the Linux /proc filesystem.

psutil exposes per-thread CPU times but not when a thread started, which is
needed to compute ps-style lifetime CPU percentages.
"""

import os
from pathlib import Path

PROC_ROOT = Path("/proc")

# Field 22 (starttime) of /proc/<pid>/task/<tid>/stat, counted from the
# first field after the parenthesised comm (field 3).
_STARTTIME_INDEX = 22 - 3


def clock_ticks() -> int:
    """Return the kernel clock tick rate (USER_HZ)."""
    return os.sysconf("SC_CLK_TCK")


def thread_start_ticks(pid: int, tid: int, proc_root: Path = PROC_ROOT) -> int | None:
    """Return a thread's start time in clock ticks since boot.

    The comm field may contain spaces and parentheses, so the line is split
    after the last ')'.

    Returns:
        Start time in ticks, or None if the thread is gone or the stat line
        is unreadable.
    """
    stat_path = proc_root / str(pid) / "task" / str(tid) / "stat"
    try:
        data = stat_path.read_text()
    except OSError:
        return None

    rparen = data.rfind(")")
    if rparen == -1:
        return None
    fields = data[rparen + 2 :].split()
    try:
        return int(fields[_STARTTIME_INDEX])
    except (IndexError, ValueError):
        return None
