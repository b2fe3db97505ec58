"""Cartridge format model: line classification and shared data types.

WHY: The splitter and the joiner must agree exactly on what a code
boundary, a resource tag, and a segment name look like. Keeping those
rules and the dataclasses that flow between the two pipelines in one
leaf module makes that contract explicit.

HOW: A handful of pure predicates classify single lines. Dataclasses
describe segments, resource blocks, the order/version records and the
results of a split.

RULES:
- A resource tag is __<kind>__, at least 5 chars, with no space, '=' or
  '.' in <kind>. No regex and no fixed vocabulary of kinds.
- The scissor line is exactly "-->8" and is never a segment name.
- Resource kinds outside CANONICAL_RESOURCE_ORDER are still valid; they
  sort after the canonical ones, keeping their discovery order.
- Lines passed in here never carry a line terminator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from picoeater.config import DEFAULT_VERSION

TAG_DELIMITER = "__"
SCISSOR = "-->8"
COMMENT_MARKER = "--"
CODE_SECTION_TAG = "__lua__"
VERSION_KEYWORD = "version"
HEADER_TITLE = "pico-8 cartridge // http://www.pico-8.com"

CANONICAL_RESOURCE_ORDER: tuple[str, ...] = ("gfx", "gff", "label", "map", "sfx", "music")
"""Graphics, flags, label, map, sound, music: the order PICO-8 writes them in."""

_FORBIDDEN_KIND_CHARS = (" ", "=", ".")


# ---------------------------------------------------------------------------
# Line classification
# ---------------------------------------------------------------------------

def is_resource_tag(line: str) -> bool:
    """True if the line introduces a resource block (or the code section)."""
    if len(line) < 5:
        return False
    if not (line.startswith(TAG_DELIMITER) and line.endswith(TAG_DELIMITER)):
        return False
    inner = line[len(TAG_DELIMITER):-len(TAG_DELIMITER)]
    return not any(ch in inner for ch in _FORBIDDEN_KIND_CHARS)


def resource_kind(line: str) -> str:
    """Return the kind named by a tag line, e.g. "gfx" for "__gfx__".

    Raises:
        ValueError: If the line is not a resource tag.
    """
    if not is_resource_tag(line):
        raise ValueError("Not a resource tag line: {!r}".format(line))
    return line[len(TAG_DELIMITER):-len(TAG_DELIMITER)]


def tag_line(kind: str) -> str:
    return "{0}{1}{0}".format(TAG_DELIMITER, kind)


def is_scissor(line: str) -> bool:
    return line == SCISSOR


def segment_name(line: str) -> str | None:
    """Return the display name carried by a name comment, or None.

    A name comment is "--" followed by non-blank text; the trimmed text is
    the name. The scissor token also starts with "--" but is never a name.
    """
    if is_scissor(line) or not line.startswith(COMMENT_MARKER):
        return None
    name = line[len(COMMENT_MARKER):].strip()
    return name or None


def name_comment(name: str) -> str:
    return "{} {}".format(COMMENT_MARKER, name)


def version_token(line: str) -> str | None:
    """Return the version token if the line is a header version line."""
    if not line.startswith(VERSION_KEYWORD):
        return None
    rest = line[len(VERSION_KEYWORD):]
    if rest and not rest[0].isspace():
        # e.g. "versions" is not a version line
        return None
    return rest.strip()


def default_header(version: str | None = None) -> list[str]:
    """Return the two header lines written in front of the code section.

    An empty version token is kept as is and gives a bare version line.
    """
    if version is None:
        version = DEFAULT_VERSION
    return [HEADER_TITLE, "{} {}".format(VERSION_KEYWORD, version).rstrip()]


def resource_rank(kind: str) -> int:
    """Position of a kind in the canonical order; unknown kinds rank last."""
    try:
        return CANONICAL_RESOURCE_ORDER.index(kind)
    except ValueError:
        return len(CANONICAL_RESOURCE_ORDER)


def order_resource_kinds(kinds: list[str]) -> list[str]:
    """Sort kinds canonically; unknown kinds follow in their given order."""
    return sorted(kinds, key=resource_rank)


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------

@dataclass
class CodeSegment:
    """One code tab of the cartridge.

    RULES:
    - index: 0-based position in the code section
    - name: the file stem actually used (unique within one split)
    - display_name: text of the name comment, None when synthesized
    """

    index: int
    name: str
    display_name: str | None = None
    path: Path | None = None


@dataclass
class ResourceBlock:
    """One tagged resource block.

    key equals kind unless duplicate kinds are preserved, in which case
    later blocks get a disambiguated key such as "gfx-2".
    """

    kind: str
    key: str
    path: Path | None = None


@dataclass
class OrderRecord:
    """Original arrangement of segments and resources.

    None for either list means no record exists for it, which is different
    from an empty record.
    """

    segments: list[str] | None = None
    resources: list[str] | None = None


@dataclass
class Manifest:
    """The persisted sidecar: order records plus the version record."""

    order: OrderRecord = field(default_factory=OrderRecord)
    version: str | None = None


@dataclass
class SplitResult:
    """Everything a split produced."""

    segments: list[CodeSegment]
    resources: list[ResourceBlock]
    manifest: Manifest
    manifest_path: Path | None = None

    @property
    def paths(self) -> list[Path]:
        written = [s.path for s in self.segments] + [r.path for r in self.resources]
        return [p for p in written if p is not None]
