"""Line-by-line reading and writing with newline normalization.

WHY: Both pipelines copy text line by line rather than byte by byte so
every line ending comes out the same. A part file edited on Windows, or
saved without a final newline, must still rejoin cleanly without gluing
its last line onto the next scissor or tag line.

HOW: read_lines() opens files in universal-newline mode and strips the
terminator from each line. PartWriter opens its file with newline="\n"
and appends exactly one "\n" per line it is given.

RULES:
- "\r\n", "\r" and "\n" are all line terminators on read
- Only "\n" is ever written
- A missing final newline is not an error
- Text is UTF-8 with surrogateescape, so undecodable bytes pass through
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from pathlib import Path

ENCODING = "utf-8"
ERRORS = "surrogateescape"


def read_lines(path: str | Path) -> Iterator[str]:
    """Yield the lines of a text file without their terminators."""
    with open(path, "r", encoding=ENCODING, errors=ERRORS, newline=None) as f:
        for line in f:
            if line.endswith("\n"):
                line = line[:-1]
            yield line


def first_line(path: str | Path) -> str | None:
    """Return the first line of a file without its terminator, or None if empty."""
    with open(path, "r", encoding=ENCODING, errors=ERRORS, newline=None) as f:
        line = f.readline()
    if not line:
        return None
    return line[:-1] if line.endswith("\n") else line


class PartWriter:
    """Writes lines to one output file, each followed by a single "\\n".

    Used as a context manager or closed explicitly; close() is idempotent
    so a writer handed from one state to the next can be closed safely by
    whoever finishes with it.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.lines_written = 0
        self._file = open(self.path, "w", encoding=ENCODING, errors=ERRORS, newline="\n")

    def write_line(self, line: str) -> None:
        self._file.write(line)
        self._file.write("\n")
        self.lines_written += 1

    def write_lines(self, lines: Iterable[str]) -> int:
        count = 0
        for line in lines:
            self.write_line(line)
            count += 1
        return count

    @property
    def closed(self) -> bool:
        return self._file.closed

    def close(self) -> None:
        if not self._file.closed:
            self._file.flush()
            self._file.close()

    def __enter__(self) -> PartWriter:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def copy_lines(src: str | Path, writer: PartWriter) -> int:
    """Stream every line of ``src`` into ``writer``; return the line count."""
    return writer.write_lines(read_lines(src))
