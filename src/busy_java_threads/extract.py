"""Cut a single thread's stack trace out of a jstack dump.

Each dump mode produces a different text layout:

- default: every thread block starts with a header line carrying
  ``nid=0x<hex tid>`` and ends at a blank line
- forced (``jstack -F``): blocks start with ``Thread <tid>:`` and end at a
  blank line
- mixed native (``jstack -m``): blocks are framed by
  ``--------------- <tid> ---------------`` separator lines

Segments are returned as the selected lines joined with newlines, so a
terminating blank line shows up as a trailing newline.
"""

from collections.abc import Callable

from busy_java_threads.jstack import DumpMode

MIXED_SEPARATOR = "---------------"


def nid(tid: int) -> str:
    """Render a native thread id the way jstack prints it (``nid=0x2a``)."""
    return f"0x{tid:x}"


def _lines(text: str) -> list[str]:
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    return lines


def _through_blank_line(lines: list[str], is_header: Callable[[str], bool]) -> str | None:
    """Segment from the first header line through the following blank line."""
    for start, line in enumerate(lines):
        if not is_header(line):
            continue
        stop = len(lines)
        for i in range(start + 1, len(lines)):
            if lines[i] == "":
                stop = i + 1
                break
        return "\n".join(lines[start:stop])
    return None


def _default_segment(lines: list[str], tid: int) -> str | None:
    # Trailing space keeps nid=0x2a from matching nid=0x2ab
    token = f"nid={nid(tid)} "
    return _through_blank_line(lines, lambda line: token in line)


def _forced_segment(lines: list[str], tid: int) -> str | None:
    header = f"Thread {tid}:"
    return _through_blank_line(lines, lambda line: line.startswith(header))


def _mixed_native_segment(lines: list[str], tid: int) -> str | None:
    opening = f"{MIXED_SEPARATOR} {tid} {MIXED_SEPARATOR}"
    try:
        start = lines.index(opening) + 1
    except ValueError:
        return None

    for i in range(start, len(lines)):
        if lines[i].startswith(MIXED_SEPARATOR):
            # Closing separator becomes a blank line; the next thread's
            # marker must not leak into this block.
            return "\n".join(lines[start:i] + [""])
    # No closing separator: the block boundary is unknown
    return None


_EXTRACTORS: dict[DumpMode, Callable[[list[str], int], str | None]] = {
    DumpMode.DEFAULT: _default_segment,
    DumpMode.FORCE: _forced_segment,
    DumpMode.MIXED_NATIVE: _mixed_native_segment,
}


def extract(dump_text: str, tid: int, mode: DumpMode) -> str | None:
    """Return the stack trace segment of native thread `tid`.

    Args:
        dump_text: Raw jstack output
        tid: Native (decimal) thread id
        mode: Mode the dump was taken with

    Returns:
        The segment, or None when the thread is not in the dump (it may
        have exited between sampling and dumping).
    """
    return _EXTRACTORS[mode](_lines(dump_text), tid)
