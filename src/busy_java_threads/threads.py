"""Per-thread CPU usage of Java processes.

Reads the OS process and thread tables through psutil and returns one
ThreadSample per native thread. CPU percentages follow `ps -L -o pcpu`:
CPU time consumed over the thread's lifetime, not over a sampling window.
"""

import sys
import time
from collections.abc import Iterable
from dataclasses import dataclass

import psutil
import structlog

from busy_java_threads.procfs import clock_ticks, thread_start_ticks

log = structlog.get_logger()

JAVA_COMMAND = "java"


class UnsupportedPlatform(Exception):
    """Raised when per-thread CPU accounting is not available on this OS."""

    def __init__(self, platform: str):
        self.platform = platform
        super().__init__(f"only Linux is supported, not {platform} yet")


def check_platform(platform: str | None = None) -> None:
    """Raise UnsupportedPlatform unless running on Linux."""
    platform = platform or sys.platform
    if not platform.startswith("linux"):
        raise UnsupportedPlatform(platform)


@dataclass(frozen=True)
class ThreadSample:
    """CPU usage of one native thread at sampling time."""

    pid: int
    tid: int  # native thread id (lwp), decimal
    user: str  # owner of the process
    command: str
    cpu_percent: float


def lifetime_cpu_percent(cpu_seconds: float, elapsed_seconds: float) -> float:
    """CPU time as a percentage of wall time since start, one decimal."""
    if elapsed_seconds <= 0:
        return 0.0
    return round(cpu_seconds * 100.0 / elapsed_seconds, 1)


def _candidate_processes(target_pid: int | None, java_command: str) -> Iterable[psutil.Process]:
    if target_pid is not None:
        try:
            return [psutil.Process(target_pid)]
        except (psutil.NoSuchProcess, ValueError):
            # ValueError: psutil rejects negative pids
            log.debug("target_process_gone", pid=target_pid)
            return []

    return [
        proc
        for proc in psutil.process_iter(["name"])
        if proc.info.get("name") == java_command
    ]


def list_threads(
    target_pid: int | None = None,
    java_command: str = JAVA_COMMAND,
) -> list[ThreadSample]:
    """Take a point-in-time snapshot of thread CPU usage.

    Args:
        target_pid: Only report threads of this process. If it has exited,
            the result is empty.
        java_command: Process command name to match when no target is given.

    Returns:
        Samples in process/thread table order.
    """
    boot_time = psutil.boot_time()
    hz = clock_ticks()
    now = time.time()
    samples: list[ThreadSample] = []

    for proc in _candidate_processes(target_pid, java_command):
        try:
            with proc.oneshot():
                user = proc.username()
                command = proc.name()
                threads = proc.threads()
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            # Exited or unreadable between listing and reading
            continue

        for thread in threads:
            start_ticks = thread_start_ticks(proc.pid, thread.id)
            if start_ticks is None:
                continue
            elapsed = now - (boot_time + start_ticks / hz)
            samples.append(
                ThreadSample(
                    pid=proc.pid,
                    tid=thread.id,
                    user=user,
                    command=command,
                    cpu_percent=lifetime_cpu_percent(
                        thread.user_time + thread.system_time, elapsed
                    ),
                )
            )

    log.debug("threads_listed", target_pid=target_pid, count=len(samples))
    return samples
