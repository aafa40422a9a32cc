"""Top-N selection of the busiest threads."""

from collections.abc import Sequence
from dataclasses import dataclass

from busy_java_threads.extract import nid
from busy_java_threads.threads import ThreadSample


@dataclass(frozen=True)
class SelectedThread:
    """A sample chosen for reporting, with its 1-based rank in the round."""

    rank: int
    sample: ThreadSample

    @property
    def pid(self) -> int:
        return self.sample.pid

    @property
    def tid(self) -> int:
        return self.sample.tid

    @property
    def nid(self) -> str:
        return nid(self.sample.tid)

    @property
    def user(self) -> str:
        return self.sample.user

    @property
    def cpu_percent(self) -> float:
        return self.sample.cpu_percent


def rank(samples: Sequence[ThreadSample], count: int) -> list[SelectedThread]:
    """Return the `count` busiest samples, highest CPU first.

    sorted() is stable, so threads with equal CPU keep their table order
    and identical readings give identical output.
    """
    busiest = sorted(samples, key=lambda s: s.cpu_percent, reverse=True)[: max(count, 0)]
    return [SelectedThread(rank=i, sample=s) for i, s in enumerate(busiest, start=1)]
