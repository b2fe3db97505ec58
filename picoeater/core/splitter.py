"""Split a composite cartridge into per-segment and per-resource files.

WHY: A .p8 cartridge keeps every code tab and every resource block in
one file, which is awkward to edit and diff. Splitting it lets each tab
live in its own .lua file while a manifest remembers how to put the
cartridge back together.

HOW: A finite-state tokenizer walks the cartridge one line at a time:

  Init -> LuaStart -> CodeBody <-> ResourceStart -> ResourceBody
                         ^  |                          |
                         +--+ (scissor)                +-> ResourceStart

Each state is a small object whose feed() returns the next state. The
states that are writing a part file (CodeBody, ResourceBody) own its
PartWriter and close it before handing control to the next state, so
there is never more than one open output file.

RULES:
- Header lines before __lua__ are dropped; only the version token is kept
- An unnamed segment gets a placeholder name and a synthesized name
  comment as its first line, so re-splitting a rebuilt cartridge yields
  the same name
- Name collisions are resolved with a -2, -3, ... suffix, never an error
- A resource file starts with its original tag line
- Ending in Init, LuaStart or ResourceStart raises MalformedCartridgeError
- Duplicate resource kinds: last block wins unless keep_duplicates=True
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from picoeater.config import MAX_STEM_LENGTH, RESOURCE_SUFFIX, SEGMENT_SUFFIX
from picoeater.core.lines import PartWriter, read_lines
from picoeater.core.manifest import write_manifest
from picoeater.core.model import (
    CODE_SECTION_TAG,
    CodeSegment,
    Manifest,
    OrderRecord,
    ResourceBlock,
    SplitResult,
    is_resource_tag,
    is_scissor,
    name_comment,
    resource_kind,
    segment_name,
    version_token,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "tab"

# Characters that are not safe in file names on at least one platform
_UNSAFE_CHARS = set('/\\:*?"<>|')


class MalformedCartridgeError(ValueError):
    """Raised when the cartridge ends in the middle of its structure.

    WHY: A file that never reaches __lua__, or stops right after a
    boundary or tag line, is truncated or not a cartridge at all.
    Accepting it would silently produce an incomplete dump.

    RULES:
    - state is the tokenizer state the input ended in
    - line_number is the number of lines consumed (1-based last line)
    """

    def __init__(self, state: str, line_number: int, message: str) -> None:
        self.state = state
        self.line_number = line_number
        super().__init__("{} (ended in state {} after line {})".format(
            message, state, line_number
        ))


def sanitize_stem(name: str) -> str:
    """Turn a display name into something usable as a file stem.

    Unsafe and control characters become "_", surrounding whitespace and
    dots are trimmed, and the result is capped at MAX_STEM_LENGTH. May
    return an empty string.
    """
    cleaned = "".join(
        "_" if (ch in _UNSAFE_CHARS or ord(ch) < 32) else ch for ch in name
    )
    cleaned = cleaned.strip().strip(".").strip()
    return cleaned[:MAX_STEM_LENGTH].rstrip(". ")


def placeholder_name(index: int) -> str:
    return "{}{}".format(PLACEHOLDER_PREFIX, index)


class _SplitContext:
    """Mutable bookkeeping shared by the states of one split run."""

    def __init__(self, out_dir: Path, keep_duplicates: bool) -> None:
        self.out_dir = out_dir
        self.keep_duplicates = keep_duplicates
        self.segments: list[CodeSegment] = []
        self.resources: list[ResourceBlock] = []
        self.version: str | None = None
        self.line_number = 0
        self._segment_stems: set[str] = set()
        self._resource_keys: set[str] = set()
        # kind -> position of its first block in self.resources
        self._resource_index: dict[str, int] = {}

    @staticmethod
    def _unique(stem: str, used: set[str]) -> str:
        # Compare case-insensitively; some file systems do
        if stem.casefold() not in used:
            return stem
        counter = 2
        while True:
            candidate = "{}-{}".format(stem, counter)
            if candidate.casefold() not in used:
                return candidate
            counter += 1

    def open_segment(self, display_name: str | None) -> PartWriter:
        index = len(self.segments)
        base = sanitize_stem(display_name) if display_name else ""
        if not base:
            base = placeholder_name(index)
        stem = self._unique(base, self._segment_stems)
        if stem != base:
            logger.debug("Segment name %r already used, writing %r", base, stem)
        self._segment_stems.add(stem.casefold())

        path = self.out_dir / "{}{}".format(stem, SEGMENT_SUFFIX)
        self.segments.append(
            CodeSegment(index=index, name=stem, display_name=display_name, path=path)
        )
        logger.debug("Segment %d -> %s", index, path.name)
        return PartWriter(path)

    def open_resource(self, kind: str) -> PartWriter:
        replaced = self._resource_index.get(kind)
        if replaced is not None and not self.keep_duplicates:
            logger.warning(
                "Duplicate resource block __%s__ at line %d replaces the earlier one",
                kind, self.line_number,
            )
            key = self.resources[replaced].key
        else:
            # A new kind, or a kept duplicate; distinct kinds that sanitize
            # to the same file name still get their own file
            replaced = None
            key = self._unique(sanitize_stem(kind) or "resource", self._resource_keys)
            self._resource_keys.add(key.casefold())

        path = self.out_dir / "{}{}".format(key, RESOURCE_SUFFIX)
        block = ResourceBlock(kind=kind, key=key, path=path)
        # The replacing block keeps the position the kind was first seen at
        if replaced is None:
            self._resource_index.setdefault(kind, len(self.resources))
            self.resources.append(block)
        else:
            self.resources[replaced] = block
        logger.debug("Resource __%s__ -> %s", kind, path.name)
        return PartWriter(path)


# ---------------------------------------------------------------------------
# Tokenizer states
# ---------------------------------------------------------------------------

class _State:
    name = "?"
    # Message used when the input ends while in this state; None = normal end
    truncated_message: str | None = None

    def feed(self, line: str, ctx: _SplitContext) -> _State:
        raise NotImplementedError

    def finish(self, ctx: _SplitContext) -> None:
        if self.truncated_message is not None:
            raise MalformedCartridgeError(self.name, ctx.line_number, self.truncated_message)

    def abandon(self) -> None:
        """Release resources after an error; the default state owns none."""


class _Init(_State):
    name = "Init"
    truncated_message = "No {} section found; not a cartridge".format(CODE_SECTION_TAG)

    def feed(self, line: str, ctx: _SplitContext) -> _State:
        if line == CODE_SECTION_TAG:
            return _LuaStart()
        token = version_token(line)
        if token is not None:
            ctx.version = token
        return self


class _LuaStart(_State):
    name = "LuaStart"
    truncated_message = "Cartridge ends where a code segment should start"

    def feed(self, line: str, ctx: _SplitContext) -> _State:
        display_name = segment_name(line)
        writer = ctx.open_segment(display_name)
        body = _CodeBody(writer)
        if display_name is not None:
            writer.write_line(line)
            return body
        # Synthesize the name comment, then treat the line as ordinary
        # segment input (it may itself be a boundary)
        writer.write_line(name_comment(ctx.segments[-1].name))
        return body.feed(line, ctx)


class _WritingState(_State):
    """A state that owns the PartWriter of the file being written."""

    def __init__(self, writer: PartWriter) -> None:
        self.writer = writer

    def finish(self, ctx: _SplitContext) -> None:
        self.writer.close()

    def abandon(self) -> None:
        self.writer.close()


class _CodeBody(_WritingState):
    name = "CodeBody"

    def feed(self, line: str, ctx: _SplitContext) -> _State:
        if is_scissor(line):
            self.writer.close()
            return _LuaStart()
        if is_resource_tag(line):
            self.writer.close()
            return _ResourceStart(line)
        self.writer.write_line(line)
        return self


class _ResourceStart(_State):
    name = "ResourceStart"
    truncated_message = "Cartridge ends right after a resource tag"

    def __init__(self, tag: str) -> None:
        self.tag = tag

    def feed(self, line: str, ctx: _SplitContext) -> _State:
        writer = ctx.open_resource(resource_kind(self.tag))
        writer.write_line(self.tag)
        return _ResourceBody(writer).feed(line, ctx)


class _ResourceBody(_WritingState):
    name = "ResourceBody"

    def feed(self, line: str, ctx: _SplitContext) -> _State:
        if is_resource_tag(line):
            self.writer.close()
            return _ResourceStart(line)
        self.writer.write_line(line)
        return self


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def split_lines(
    lines: Iterable[str],
    out_dir: str | Path,
    keep_duplicates: bool = False,
) -> SplitResult:
    """Run the tokenizer over ``lines`` and write part files to ``out_dir``.

    WHY: Separated from split_cartridge() so the state machine can be
    driven from any line source (tests, stdin) without a cartridge file.

    HOW: Feeds each line to the current state and lets it pick the next.
    When input runs out, the final state decides whether that is a normal
    end or a truncated cartridge.

    RULES:
    - Lines must not carry terminators (see core.lines.read_lines)
    - out_dir is created if it does not exist
    - Does not write the manifest; split_cartridge() does

    Args:
        lines: Cartridge lines without terminators.
        out_dir: Directory that receives the part files.
        keep_duplicates: Keep every block of a repeated resource kind
            instead of only the last one.

    Returns:
        SplitResult with the written segments/resources and the manifest
        describing their order.

    Raises:
        MalformedCartridgeError: If the input ends mid-structure.
        OSError: If a part file cannot be written.
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    ctx = _SplitContext(out_dir, keep_duplicates)
    state: _State = _Init()
    try:
        for line in lines:
            ctx.line_number += 1
            state = state.feed(line, ctx)
        state.finish(ctx)
    except BaseException:
        state.abandon()
        raise

    manifest = Manifest(
        order=OrderRecord(
            segments=[s.name for s in ctx.segments],
            resources=[r.key for r in ctx.resources],
        ),
        version=ctx.version,
    )
    return SplitResult(segments=ctx.segments, resources=ctx.resources, manifest=manifest)


def split_cartridge(
    cart_path: str | Path,
    out_dir: str | Path,
    keep_duplicates: bool = False,
) -> SplitResult:
    """Split a cartridge file into part files plus a manifest.

    Args:
        cart_path: The composite .p8 file to read.
        out_dir: Directory that receives the part files and manifest.
        keep_duplicates: See split_lines().

    Returns:
        SplitResult including the manifest path.

    Raises:
        MalformedCartridgeError: If the cartridge is truncated or is not
            a cartridge.
        OSError: If a file cannot be read or written.
    """
    cart_path = Path(cart_path)
    logger.info("Splitting %s into %s", cart_path, out_dir)

    result = split_lines(read_lines(cart_path), out_dir, keep_duplicates=keep_duplicates)
    result.manifest_path = write_manifest(out_dir, result.manifest)

    logger.info(
        "Split %s: %d segment(s), %d resource(s), version %s",
        cart_path.name, len(result.segments), len(result.resources),
        result.manifest.version or "(none)",
    )
    return result
