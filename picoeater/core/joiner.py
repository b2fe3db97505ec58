"""Reassemble a cartridge from a directory of part files.

WHY: After editing the split .lua and resource files, they have to go
back into a single .p8 cartridge with the header, the __lua__ marker,
scissor lines and resource tags in the right places. The part files
themselves say nothing about their position, so the order has to be
reconstructed from the manifest or, failing that, from naming rules.

HOW: build_join_plan() snapshots the directory, reads the manifest and
decides the final order in two phases: record entries first (each one
consuming its file), then every leftover file by the fallback rule.
iter_cartridge_lines() streams the plan as lines, and join_cartridge()
writes them through a PartWriter.

RULES:
- Every discovered part appears exactly once; none is ever invented
- Record entries without a matching file are skipped, not errors
- Segment fallback: file-name order. Resource fallback: canonical kind
  order, unknown kinds after in file-name order
- "-->8" goes between segments only, never before the first or after
  the last
- A resource file whose first line is a tag is copied as is; otherwise
  __<stem>__ is written in front of it, which requires a stem without
  spaces, dots or "="
- Header comes from the version record, else the default header
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from picoeater.core.discovery import discover_parts
from picoeater.core.lines import PartWriter, first_line, read_lines
from picoeater.core.manifest import read_manifest
from picoeater.core.model import (
    CODE_SECTION_TAG,
    SCISSOR,
    default_header,
    is_resource_tag,
    resource_kind,
    resource_rank,
    tag_line,
)

logger = logging.getLogger(__name__)


@dataclass
class ResourceEntry:
    """A resource part file as the joiner sees it.

    RULES:
    - key: file stem, the identifier used by the order record
    - kind: from the file's own tag line, else the stem
    - has_tag_line: True if the file already starts with its tag
    """

    key: str
    kind: str
    path: Path
    has_tag_line: bool

    @property
    def tag(self) -> str:
        return tag_line(self.kind)


@dataclass
class JoinPlan:
    """The fully ordered description of the cartridge to write."""

    header: list[str]
    segments: list[tuple[str, Path]]
    resources: list[ResourceEntry]
    skipped: list[str] = field(default_factory=list)

    @property
    def segment_names(self) -> list[str]:
        return [name for name, _ in self.segments]

    @property
    def resource_keys(self) -> list[str]:
        return [entry.key for entry in self.resources]


def _apply_order(
    record: Optional[list[str]],
    discovered: list[str],
    fallback: Callable[[list[str]], list[str]],
) -> tuple[list[str], list[str]]:
    """Order discovered names by record first, then by the fallback rule.

    Returns:
        Tuple of (ordered names, record entries that matched nothing).
    """
    remaining = list(discovered)
    ordered: list[str] = []
    skipped: list[str] = []

    if record is not None:
        for name in record:
            if name in remaining:
                remaining.remove(name)
                ordered.append(name)
            else:
                skipped.append(name)

    ordered.extend(fallback(remaining))
    return ordered, skipped


def _resource_entry(key: str, path: Path) -> ResourceEntry:
    line = first_line(path)
    if line is not None and is_resource_tag(line):
        return ResourceEntry(key=key, kind=resource_kind(line), path=path, has_tag_line=True)
    # The stem becomes the tag, so it must read back as one
    if not is_resource_tag(tag_line(key)):
        raise ValueError(
            "Resource file {} has no tag line and its name is not a valid "
            "resource kind; add a __<kind>__ first line or rename it".format(path)
        )
    return ResourceEntry(key=key, kind=key, path=path, has_tag_line=False)


def build_join_plan(parts_dir: str | Path) -> JoinPlan:
    """Decide what goes into the cartridge and in which order.

    Args:
        parts_dir: Directory holding the part files and optional manifest.

    Returns:
        A JoinPlan ready for iter_cartridge_lines().

    Raises:
        ValueError: If the directory holds no segment file, or a resource
            file without a tag line has a name that cannot be a kind.
        ManifestError: If the manifest exists but is invalid.
        FileNotFoundError: If the directory does not exist.
    """
    parts_dir = Path(parts_dir)
    parts = discover_parts(parts_dir)
    if not parts.segments:
        raise ValueError("No code segment files found in {}".format(parts_dir))

    manifest = read_manifest(parts_dir)
    if manifest is None:
        logger.info("No manifest in %s, using fallback ordering", parts_dir)
        segment_record = resource_record = None
        version = None
    else:
        segment_record = manifest.order.segments
        resource_record = manifest.order.resources
        version = manifest.version

    segment_names, skipped_segments = _apply_order(
        segment_record, list(parts.segments), lambda names: names,
    )

    entries = {key: _resource_entry(key, path) for key, path in parts.resources.items()}

    def canonical(keys: list[str]) -> list[str]:
        return sorted(keys, key=lambda k: resource_rank(entries[k].kind))

    resource_keys, skipped_resources = _apply_order(
        resource_record, list(entries), canonical,
    )

    skipped = skipped_segments + skipped_resources
    for name in skipped:
        logger.debug("Order record entry %r has no part file, skipping", name)

    return JoinPlan(
        header=default_header(version),
        segments=[(name, parts.segments[name]) for name in segment_names],
        resources=[entries[key] for key in resource_keys],
        skipped=skipped,
    )


def iter_cartridge_lines(plan: JoinPlan) -> Iterator[str]:
    """Yield the cartridge described by ``plan`` line by line."""
    yield from plan.header
    yield CODE_SECTION_TAG
    for i, (_, path) in enumerate(plan.segments):
        if i:
            yield SCISSOR
        yield from read_lines(path)
    for entry in plan.resources:
        if not entry.has_tag_line:
            yield entry.tag
        yield from read_lines(entry.path)


def join_cartridge(parts_dir: str | Path, cart_path: str | Path) -> JoinPlan:
    """Build ``cart_path`` from the part files in ``parts_dir``.

    WHY: The inverse of split_cartridge(); together they round-trip a
    cartridge through editable files.

    HOW: Computes the plan from a single directory snapshot, then streams
    it into the output with newline-normalized writes.

    RULES:
    - The output file is overwritten
    - Nothing is retried; an I/O error propagates and may leave a
      partially written cartridge behind

    Args:
        parts_dir: Directory holding the part files and optional manifest.
        cart_path: Cartridge file to write.

    Returns:
        The JoinPlan that was written.
    """
    cart_path = Path(cart_path)
    plan = build_join_plan(parts_dir)
    logger.info("Joining %s into %s", parts_dir, cart_path)

    with PartWriter(cart_path) as writer:
        count = writer.write_lines(iter_cartridge_lines(plan))

    logger.info(
        "Wrote %s: %d segment(s), %d resource(s), %d line(s)",
        cart_path.name, len(plan.segments), len(plan.resources), count,
    )
    return plan
