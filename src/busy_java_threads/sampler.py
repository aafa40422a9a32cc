"""Sampling rounds and the loop that repeats them."""

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import structlog

from busy_java_threads.extract import extract
from busy_java_threads.jstack import (
    DumpCache,
    DumpError,
    DumpMode,
    DumpProvider,
    Identity,
    ThreadNotFoundInDump,
)
from busy_java_threads.ranker import SelectedThread, rank
from busy_java_threads.report import Reporter
from busy_java_threads.threads import ThreadSample

log = structlog.get_logger()

ThreadSource = Callable[[int | None], Sequence[ThreadSample]]


@dataclass(frozen=True)
class ReportEntry:
    """Outcome for one selected thread: a stack, or the reason there is none."""

    selected: SelectedThread
    stack: str | None = None
    error: DumpError | None = None


class SamplingRound:
    """One pass: sample threads, rank, dump each process once, extract, report."""

    def __init__(
        self,
        source: ThreadSource,
        provider: DumpProvider,
        reporter: Reporter,
        *,
        target_pid: int | None,
        count: int,
        mode: DumpMode,
        invoker: Identity,
    ):
        self.source = source
        self.provider = provider
        self.reporter = reporter
        self.target_pid = target_pid
        self.count = count
        self.mode = mode
        self.invoker = invoker

    def run(self, cache: DumpCache) -> list[ReportEntry]:
        """Run the round against a fresh cache.

        Every selected thread yields exactly one entry, in rank order; dump
        failures become entries instead of aborting the round.
        """
        selected = rank(self.source(self.target_pid), self.count)
        entries: list[ReportEntry] = []

        for thread in selected:
            entry = self._resolve(cache, thread)
            self.reporter.report(entry)
            entries.append(entry)

        log.debug(
            "round_complete",
            selected=len(entries),
            failed=sum(1 for e in entries if e.error is not None),
            dumps=len(cache),
        )
        return entries

    def _resolve(self, cache: DumpCache, thread: SelectedThread) -> ReportEntry:
        try:
            dump = self.provider.get_dump(
                cache, thread.pid, thread.user, self.invoker, self.mode
            )
        except DumpError as e:
            return ReportEntry(selected=thread, error=e)

        stack = extract(dump.raw_text, thread.tid, self.mode)
        if stack is None:
            log.debug("thread_not_in_dump", pid=thread.pid, tid=thread.tid)
            return ReportEntry(selected=thread, error=ThreadNotFoundInDump(thread.pid, thread.tid))
        return ReportEntry(selected=thread, stack=stack)


def resolve_update_count(delay: float | None, update_count: int | None) -> int:
    """Number of rounds to run, vmstat style. 0 means until interrupted.

    No delay: a single round. Delay without count: forever.
    """
    if delay is None:
        return 1
    if update_count is None or update_count < 0:
        return 0
    return update_count


class Scheduler:
    """Repeats a round with a fixed delay, each round with its own DumpCache."""

    def __init__(
        self,
        round_fn: Callable[[DumpCache, int], object],
        *,
        delay: float,
        update_count: int,
        sleep: Callable[[float], None] = time.sleep,
        cache_factory: Callable[[], DumpCache] = DumpCache,
    ):
        """Initialize the scheduler.

        Args:
            round_fn: Called with (cache, 1-based iteration) for every round
            delay: Seconds between rounds (no sleep before the first)
            update_count: Rounds to run; <= 0 runs until interrupted
            sleep: Sleep function, replaceable in tests
            cache_factory: Creates the per-round cache
        """
        self.round_fn = round_fn
        self.delay = delay
        self.update_count = update_count
        self.sleep = sleep
        self.cache_factory = cache_factory
        self.rounds_run = 0

    def run(self) -> int:
        """Run all rounds and return how many completed.

        KeyboardInterrupt propagates to the caller; the current round's
        cache is removed on the way out.
        """
        iteration = 0
        while self.update_count <= 0 or iteration < self.update_count:
            if iteration > 0:
                self.sleep(self.delay)
            iteration += 1
            with self.cache_factory() as cache:
                self.round_fn(cache, iteration)
            self.rounds_run = iteration
        return self.rounds_run
