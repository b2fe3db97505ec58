"""Shared test fixtures for the picoeater test suite.

WHY: Most test modules need the same small but complete cartridge: a
header with a version line, named and unnamed code tabs, and several
resource blocks in canonical order. Centralizing it here keeps every
test working against the same layout.

HOW: SAMPLE_CART_LINES is the cartridge as a list of lines. Fixtures
write it to tmp_path and provide an empty part directory.

RULES:
- The third code tab is deliberately unnamed.
- Resource blocks appear in canonical order (gfx, gff, sfx, music).
- Files are written with "\\n" line endings unless a test says otherwise.
"""

from pathlib import Path
from typing import List

import pytest

SAMPLE_CART_LINES: List[str] = [
    "pico-8 cartridge // http://www.pico-8.com",
    "version 41",
    "__lua__",
    "-- dr chaos",
    "function _init()",
    "  t = 0",
    "end",
    "-->8",
    "-- splash screen",
    'print("hi")',
    "-->8",
    "x = 1",
    "__gfx__",
    "00000000000000000000000000000000",
    "00700700000000000000000000000000",
    "__gff__",
    "0001000000000000",
    "__sfx__",
    "010100000c0500c0500c050",
    "__music__",
    "00 01424344",
]


def _write_lines(path: Path, lines: List[str], newline: str = "\n") -> Path:
    path.write_bytes("".join(line + newline for line in lines).encode("utf-8"))
    return path


@pytest.fixture
def write_lines():
    """Helper that writes a list of lines to a file, each with a terminator."""
    return _write_lines


@pytest.fixture
def sample_cart(tmp_path):
    """The sample cartridge written to tmp_path/game.p8."""
    return _write_lines(tmp_path / "game.p8", SAMPLE_CART_LINES)


@pytest.fixture
def parts_dir(tmp_path):
    """An empty directory for part files."""
    path = tmp_path / "parts"
    path.mkdir()
    return path


@pytest.fixture
def sample_lines():
    """The sample cartridge as a list of lines without terminators."""
    return list(SAMPLE_CART_LINES)
