"""Thread dumps via jstack.

A dump is the most expensive step of a round (it briefly pauses the target
JVM), so each process is dumped at most once per round. Raw output goes to a
round-scoped temp directory owned by DumpCache, which removes it on every
exit path.
"""

import os
import pwd
import shlex
import shutil
import subprocess
import sys
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import structlog

log = structlog.get_logger()


class DumpMode(Enum):
    """jstack invocation flavor, fixed for the whole run."""

    DEFAULT = "default"
    FORCE = "force"  # jstack -F, for hung processes
    MIXED_NATIVE = "mixed_native"  # jstack -m, java and native frames

    @property
    def flags(self) -> list[str]:
        return {
            DumpMode.DEFAULT: [],
            DumpMode.FORCE: ["-F"],
            DumpMode.MIXED_NATIVE: ["-m"],
        }[self]

    @classmethod
    def from_flags(cls, force: bool, mix_native_frames: bool) -> "DumpMode":
        """Pick the mode from CLI flags. Mixed mode decides the dump layout."""
        if mix_native_frames:
            return cls.MIXED_NATIVE
        if force:
            return cls.FORCE
        return cls.DEFAULT


@dataclass(frozen=True)
class ThreadDump:
    """Full jstack output for one process, taken once per round."""

    pid: int
    raw_text: str
    mode: DumpMode
    path: Path


@dataclass(frozen=True)
class Identity:
    """A user the tool runs as or a process runs under."""

    name: str
    uid: int

    @property
    def can_elevate(self) -> bool:
        return self.uid == 0

    @classmethod
    def current(cls) -> "Identity":
        """Identity of the effective user.

        Uses the effective uid rather than $USER, which `sudo -u` leaves
        unchanged.
        """
        uid = os.geteuid()
        try:
            name = pwd.getpwuid(uid).pw_name
        except KeyError:
            name = str(uid)
        return cls(name=name, uid=uid)


class ElevationStrategy:
    """Runs a command as another user."""

    def __init__(self, command: str = "sudo"):
        self.command = command

    def wrap(self, argv: Sequence[str], user: str) -> list[str]:
        return [self.command, "-u", user, *argv]

    def hint(self, argv: Sequence[str]) -> str:
        """Command line to re-run the tool with elevation."""
        return f"{self.command} {shlex.join(argv)}"


# --- Errors ---


class DumpToolUnresolvable(Exception):
    """No usable jstack binary. Fatal at startup."""


class DumpError(Exception):
    """A thread stack could not be obtained for one process. Not fatal."""

    def __init__(self, pid: int, message: str):
        self.pid = pid
        super().__init__(message)


class PermissionDenied(DumpError):
    """The process belongs to another user and we cannot elevate."""

    def __init__(self, pid: int, owner: str, invoker: str, hint: str):
        self.owner = owner
        self.invoker = invoker
        self.hint = hint
        super().__init__(
            pid,
            f"user of java process({owner}) is not current user({invoker}), "
            f"need sudo to run again: {hint}",
        )


class ToolFailed(DumpError):
    """jstack exited non-zero, could not be started, or printed nothing."""

    def __init__(self, pid: int, returncode: int | None = None, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        detail = f"exit code {returncode}" if returncode is not None else "not started"
        super().__init__(pid, f"jstack failed for process {pid} ({detail})")


class ThreadNotFoundInDump(DumpError):
    """The thread is not in the dump, usually because it exited."""

    def __init__(self, pid: int, tid: int):
        self.tid = tid
        super().__init__(pid, f"thread {tid} exited before dump of process {pid}")


# --- jstack discovery ---


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def resolve_jstack_path(
    override: str | Path | None = None,
    *,
    search_path: str | None = None,
    java_home: str | None = None,
) -> Path:
    """Locate jstack: explicit override, then PATH, then $JAVA_HOME/bin.

    Args:
        override: Path given by the user; must be an executable file
        search_path: PATH string to search (defaults to the environment)
        java_home: JAVA_HOME value (defaults to the environment)

    Raises:
        DumpToolUnresolvable: With a message telling the user what to fix.
    """
    if override:
        path = Path(override)
        if not _is_executable(path):
            raise DumpToolUnresolvable(f"{path} is NOT found/executable!")
        return path

    found = shutil.which("jstack", path=search_path)
    if found:
        return Path(found)

    if java_home is None:
        java_home = os.environ.get("JAVA_HOME")
    if not java_home:
        raise DumpToolUnresolvable(
            "jstack not found on PATH! Use -s option set jstack path manually."
        )

    path = Path(java_home) / "bin" / "jstack"
    if not path.is_file():
        raise DumpToolUnresolvable(
            f"jstack not found on PATH and $JAVA_HOME/bin/jstack({path}) file does NOT exist! "
            "Use -s option set jstack path manually."
        )
    if not os.access(path, os.X_OK):
        raise DumpToolUnresolvable(
            f"jstack not found on PATH and $JAVA_HOME/bin/jstack({path}) is NOT executable! "
            "Use -s option set jstack path manually."
        )
    return path


# --- Round cache ---


class DumpCache:
    """Dumps (or dump failures) of one round, keyed by pid.

    Use as a context manager: the temp directory holding raw dumps is
    created on enter and removed on exit, including on KeyboardInterrupt.
    """

    def __init__(self, parent: Path | None = None):
        self._parent = parent
        self._dir: Path | None = None
        self._entries: dict[int, ThreadDump | DumpError] = {}

    @property
    def directory(self) -> Path:
        if self._dir is None:
            raise RuntimeError("DumpCache used outside its 'with' block")
        return self._dir

    def artifact_path(self, pid: int) -> Path:
        return self.directory / f"{pid}.jstack"

    def get(self, pid: int) -> ThreadDump | DumpError | None:
        return self._entries.get(pid)

    def put(self, pid: int, entry: ThreadDump | DumpError) -> None:
        self._entries[pid] = entry

    def __len__(self) -> int:
        return len(self._entries)

    def open(self) -> None:
        self._dir = Path(tempfile.mkdtemp(prefix="busy-java-threads-", dir=self._parent))
        log.debug("dump_cache_opened", path=str(self._dir))

    def close(self) -> None:
        self._entries.clear()
        if self._dir is not None:
            shutil.rmtree(self._dir, ignore_errors=True)
            log.debug("dump_cache_removed", path=str(self._dir))
            self._dir = None

    def __enter__(self) -> "DumpCache":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


# --- Provider ---


class DumpProvider:
    """Produces thread dumps, choosing direct or elevated jstack invocation."""

    def __init__(
        self,
        jstack_path: Path,
        *,
        lock_info: bool = False,
        force: bool = False,
        elevation: ElevationStrategy | None = None,
        command_line: Sequence[str] | None = None,
    ):
        """Initialize the provider.

        Args:
            jstack_path: Resolved jstack binary
            lock_info: Pass -l (extra lock information)
            force: Pass -F even when the mode alone would not (forced mixed dumps)
            elevation: How to run jstack as the process owner when we are root
            command_line: argv used to build the re-run hint on permission errors
        """
        self.jstack_path = jstack_path
        self.lock_info = lock_info
        self.force = force
        self.elevation = elevation or ElevationStrategy()
        self.command_line = list(command_line) if command_line is not None else list(sys.argv)

    def jstack_argv(self, pid: int, mode: DumpMode) -> list[str]:
        flags = list(mode.flags)
        if self.force and "-F" not in flags:
            flags.insert(0, "-F")
        if self.lock_info:
            flags.append("-l")
        return [str(self.jstack_path), *flags, str(pid)]

    def get_dump(
        self,
        cache: DumpCache,
        pid: int,
        owner: str,
        invoker: Identity,
        mode: DumpMode,
    ) -> ThreadDump:
        """Return the round's dump of `pid`, running jstack on first use.

        Failures are cached too, so a process is never dumped twice in a
        round.

        Raises:
            PermissionDenied: Owner differs from invoker and invoker is not root
            ToolFailed: jstack failed or produced no output
        """
        cached = cache.get(pid)
        if isinstance(cached, DumpError):
            raise cached
        if cached is not None:
            return cached

        try:
            dump = self._dump(cache.artifact_path(pid), pid, owner, invoker, mode)
        except DumpError as e:
            cache.put(pid, e)
            raise
        cache.put(pid, dump)
        return dump

    def _dump(
        self,
        out_path: Path,
        pid: int,
        owner: str,
        invoker: Identity,
        mode: DumpMode,
    ) -> ThreadDump:
        argv = self.jstack_argv(pid, mode)
        if owner == invoker.name:
            elevated = False
        elif invoker.can_elevate:
            argv = self.elevation.wrap(argv, owner)
            elevated = True
        else:
            raise PermissionDenied(
                pid, owner, invoker.name, self.elevation.hint(self.command_line)
            )

        log.debug("jstack_invoked", pid=pid, owner=owner, elevated=elevated, argv=argv)
        try:
            with open(out_path, "wb") as out:
                completed = subprocess.run(
                    argv,
                    stdin=subprocess.DEVNULL,
                    stdout=out,
                    stderr=subprocess.PIPE,
                )
        except OSError as e:
            out_path.unlink(missing_ok=True)
            log.warning("jstack_spawn_failed", pid=pid, error=str(e))
            raise ToolFailed(pid, stderr=str(e)) from e

        stderr = completed.stderr.decode("utf-8", errors="replace").strip()
        if completed.returncode != 0 or out_path.stat().st_size == 0:
            out_path.unlink(missing_ok=True)
            log.warning(
                "jstack_failed", pid=pid, returncode=completed.returncode, stderr=stderr
            )
            raise ToolFailed(pid, completed.returncode, stderr)

        return ThreadDump(
            pid=pid,
            raw_text=out_path.read_text(encoding="utf-8", errors="replace"),
            mode=mode,
            path=out_path,
        )
