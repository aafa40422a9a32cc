"""Shared test fixtures for busy-java-threads."""

import io
import stat
from pathlib import Path

import pytest
from rich.console import Console

from busy_java_threads.jstack import Identity
from busy_java_threads.report import Reporter
from busy_java_threads.threads import ThreadSample

DEFAULT_DUMP = (
    "2026-10-17 10:00:00\n"
    "Full thread dump OpenJDK 64-Bit Server VM (17.0.8+7 mixed mode, sharing):\n"
    "\n"
    '"main" #1 prio=5 os_prio=0 cpu=1234.56ms elapsed=100.00s tid=0x00007f1c30019000 '
    "nid=0x2a runnable  [0x00007f1c38a1e000]\n"
    "   java.lang.Thread.State: RUNNABLE\n"
    "\tat com.example.Busy.spin(Busy.java:10)\n"
    "\tat com.example.Busy.main(Busy.java:5)\n"
    "\n"
    '"worker-1" #12 prio=5 os_prio=0 cpu=10.00ms elapsed=99.00s tid=0x00007f1c30400000 '
    "nid=0x2ab waiting on condition  [0x00007f1c0b7fe000]\n"
    "   java.lang.Thread.State: TIMED_WAITING (sleeping)\n"
    "\tat java.lang.Thread.sleep(java.base@17.0.8/Native Method)\n"
    "\n"
    '"VM Thread" os_prio=0 cpu=5.00ms elapsed=100.00s tid=0x00007f1c30100000 nid=0x3c runnable\n'
    "\n"
    "JNI global refs: 15, weak refs: 0\n"
    "\n"
)

FORCED_DUMP = (
    "Attaching to process ID 4242, please wait...\n"
    "Debugger attached successfully.\n"
    "Server compiler detected.\n"
    "JVM version is 25.362-b09\n"
    "Deadlock Detection:\n"
    "\n"
    "No deadlocks found.\n"
    "\n"
    "Thread 42: (state = IN_JAVA)\n"
    " - com.example.Busy.spin() @bci=10, line=10 (Compiled frame)\n"
    " - com.example.Busy.main(java.lang.String[]) @bci=1, line=5 (Interpreted frame)\n"
    "\n"
    "Thread 421: (state = BLOCKED)\n"
    " - java.lang.Object.wait(long) @bci=0 (Interpreted frame)\n"
    "\n"
)

MIXED_DUMP = (
    "Attaching to process ID 4242, please wait...\n"
    "Debugger attached successfully.\n"
    "--------------- 42 ---------------\n"
    "0x00007f1c3a0d2e2d\t__pthread_cond_wait + 0x1ed\n"
    "0x00007f1c2c01b4a0\t* com.example.Busy.spin() bci:10 line:10 (Compiled frame)\n"
    "--------------- 421 ---------------\n"
    "0x00007f1c3a0d2e2d\t__pthread_cond_wait + 0x1ed\n"
    "--------------- 7 ---------------\n"
    "0x00007f1c3a0d3000\tepoll_wait + 0x20\n"
)


def make_sample(
    pid: int = 4242,
    tid: int = 42,
    user: str = "app",
    command: str = "java",
    cpu_percent: float = 10.0,
) -> ThreadSample:
    """Create a ThreadSample with sensible defaults for testing."""
    return ThreadSample(pid=pid, tid=tid, user=user, command=command, cpu_percent=cpu_percent)


def _write_script(path: Path, body: str) -> Path:
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


class FakeJstack:
    """Executable stand-in for jstack that records every invocation.

    Prints dumps registered with set_dump() for the pid given as last
    argument, exits 1 for pids registered with fail().
    """

    def __init__(self, root: Path):
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        self.calls_log = root / "calls.log"
        self.path = _write_script(
            root / "jstack",
            "for last; do :; done\n"
            f'echo "$*" >> "{self.calls_log}"\n'
            f'if [ -f "{root}/fail_$last" ]; then\n'
            '    echo "Unable to open socket file" >&2\n'
            "    exit 1\n"
            "fi\n"
            f'if [ -f "{root}/dump_$last.txt" ]; then\n'
            f'    cat "{root}/dump_$last.txt"\n'
            "fi\n",
        )

    def set_dump(self, pid: int, text: str) -> None:
        (self.root / f"dump_{pid}.txt").write_text(text)

    def fail(self, pid: int) -> None:
        (self.root / f"fail_{pid}").touch()

    @property
    def calls(self) -> list[list[str]]:
        if not self.calls_log.exists():
            return []
        return [line.split() for line in self.calls_log.read_text().splitlines()]

    def calls_for(self, pid: int) -> int:
        return sum(1 for call in self.calls if call and call[-1] == str(pid))


@pytest.fixture
def fake_jstack(tmp_path: Path) -> FakeJstack:
    """A fake jstack binary in a private directory."""
    return FakeJstack(tmp_path / "fakebin")


@pytest.fixture
def fake_sudo(tmp_path: Path) -> Path:
    """A fake sudo that records the target user and runs the command."""
    bindir = tmp_path / "sudobin"
    bindir.mkdir()
    return _write_script(
        bindir / "sudo",
        f'echo "$2" >> "{bindir}/users.log"\nshift 2\nexec "$@"\n',
    )


@pytest.fixture
def invoker() -> Identity:
    """Non-root user that owns the sample processes."""
    return Identity(name="app", uid=1000)


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def reporter(output: io.StringIO) -> Reporter:
    """Reporter writing plain text into the `output` buffer."""
    return Reporter(console=Console(file=output, width=200, color_system=None))
