"""Command line interface for busy-java-threads."""

import signal
import sys
from pathlib import Path

import click

from busy_java_threads.config import Config
from busy_java_threads.jstack import (
    DumpCache,
    DumpMode,
    DumpProvider,
    DumpToolUnresolvable,
    ElevationStrategy,
    Identity,
    resolve_jstack_path,
)
from busy_java_threads.logging import configure as configure_logging
from busy_java_threads.logging import Icon, error, interrupted
from busy_java_threads.report import Reporter
from busy_java_threads.sampler import SamplingRound, Scheduler, resolve_update_count
from busy_java_threads.threads import UnsupportedPlatform, check_platform, list_threads

EPILOG = """\b
Examples:
  busy-java-threads          # show busy java threads info
  busy-java-threads 1        # update every 1 second (stop with CTRL+C)
  busy-java-threads 3 10     # update every 3 seconds, 10 times

DELAY/UPDATE_COUNT imitate the style of vmstat.
"""


def _raise_keyboard_interrupt(signum: int, frame: object) -> None:
    raise KeyboardInterrupt


@click.command(context_settings={"help_option_names": ["-h", "--help"]}, epilog=EPILOG)
@click.version_option(package_name="busy-java-threads")
@click.option(
    "-p",
    "--pid",
    type=click.IntRange(min=1),
    help="Find the busiest threads of this java process only (default: all java processes).",
)
@click.option("-c", "--count", type=int, help="Number of threads to show (default 5).")
@click.option(
    "-a",
    "--append-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also append the output to this file.",
)
@click.option(
    "-s",
    "--jstack-path",
    type=click.Path(path_type=Path),
    help="Path of the jstack command.",
)
@click.option(
    "-F",
    "--force",
    is_flag=True,
    help="Force a thread dump (jstack -F); use when the process is hung.",
)
@click.option(
    "-m",
    "--mix-native-frames",
    is_flag=True,
    help="Print both java and native frames (jstack -m).",
)
@click.option(
    "-l", "--lock-info", is_flag=True, help="Print additional lock information (jstack -l)."
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file (default: ~/.config/busy-java-threads/config.toml).",
)
@click.option("-v", "--verbose", is_flag=True, help="Debug diagnostics on stderr.")
@click.argument("delay", type=float, required=False)
@click.argument("update_count", type=int, required=False)
def busy_threads(
    pid: int | None,
    count: int | None,
    append_file: Path | None,
    jstack_path: Path | None,
    force: bool,
    mix_native_frames: bool,
    lock_info: bool,
    config_path: Path | None,
    verbose: bool,
    delay: float | None,
    update_count: int | None,
) -> None:
    """Find the highest CPU consuming threads of java processes and print their stacks.

    DELAY is the delay between updates in seconds, UPDATE_COUNT the number of
    updates. Without DELAY a single report is printed; with DELAY and no
    UPDATE_COUNT it repeats until interrupted.
    """
    try:
        check_platform()
    except UnsupportedPlatform as e:
        error(f"busy-java-threads {e}", Icon.FAIL)
        raise SystemExit(2)

    try:
        config = Config.load(config_path)
    except ValueError as e:
        error(str(e), Icon.FAIL)
        raise SystemExit(1)

    configure_logging(config, verbose)

    count = count if count is not None else config.sampling.count
    if count < 1:
        error(f"--count must be >= 1, got {count}", Icon.FAIL)
        raise SystemExit(1)
    if delay is not None and delay < 0:
        error(f"DELAY must be >= 0, got {delay}", Icon.FAIL)
        raise SystemExit(1)

    try:
        jstack = resolve_jstack_path(jstack_path or config.jstack.path or None)
    except DumpToolUnresolvable as e:
        error(f"Error: {e}", Icon.FAIL)
        raise SystemExit(1)

    command_line = list(sys.argv)
    rounds = resolve_update_count(delay, update_count)
    mode = DumpMode.from_flags(force, mix_native_frames)
    provider = DumpProvider(
        jstack,
        lock_info=lock_info or config.jstack.lock_info,
        force=force,
        elevation=ElevationStrategy(config.elevation.command),
        command_line=command_line,
    )
    reporter = Reporter(append_file=append_file)
    sampling_round = SamplingRound(
        lambda target: list_threads(target, config.sampling.java_command),
        provider,
        reporter,
        target_pid=pid,
        count=count,
        mode=mode,
        invoker=Identity.current(),
    )

    def run_round(cache: DumpCache, iteration: int) -> None:
        reporter.round_banner(iteration, rounds, command_line)
        sampling_round.run(cache)

    scheduler = Scheduler(run_round, delay=delay or 0.0, update_count=rounds)

    # SIGTERM unwinds like CTRL+C so the round's dump cache is removed
    previous = signal.signal(signal.SIGTERM, _raise_keyboard_interrupt)
    try:
        scheduler.run()
    except KeyboardInterrupt:
        interrupted(scheduler.rounds_run)
    finally:
        signal.signal(signal.SIGTERM, previous)


def main() -> None:
    """Console script entry point. Argument errors exit with status 1."""
    try:
        busy_threads.main(standalone_mode=False)
    except click.ClickException as e:
        e.show()
        raise SystemExit(1) from None
    except click.Abort:
        raise SystemExit(1) from None


if __name__ == "__main__":
    main()
