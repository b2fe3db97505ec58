"""Part-file discovery, default cartridge resolution, and purge.

WHY: The joiner needs to know which files in a directory are code
segments and which are resource blocks; the CLI needs to pick a
cartridge when the user names none, and to clear out the parts of an
earlier dump before writing new ones.

HOW: discover_parts() classifies files purely by suffix, one class per
suffix, sorted by file name. resolve_default_cartridge() accepts exactly
one *.p8 candidate. purge_parts() deletes what discover_parts() finds
plus the manifest.

RULES:
- Segment files end in SEGMENT_SUFFIX, resource files in RESOURCE_SUFFIX
- Only regular files directly inside the directory are considered
- Listing order is lexicographic by file name, so results are
  deterministic regardless of creation order
- Zero or several default candidates raise AmbiguousDefaultError
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from picoeater.config import CARTRIDGE_SUFFIX, RESOURCE_SUFFIX, SEGMENT_SUFFIX
from picoeater.core.manifest import manifest_path

logger = logging.getLogger(__name__)


class AmbiguousDefaultError(Exception):
    """Raised when a default file is needed but not exactly one exists.

    WHY: Guessing between several cartridges (or inventing one) would
    overwrite the wrong file. The user must name it instead.

    RULES:
    - candidates lists what was found (possibly empty)
    - Not a ValueError, so it never looks like malformed input
    """

    def __init__(self, directory: Path, suffix: str, candidates: list[Path]) -> None:
        self.directory = directory
        self.candidates = candidates
        if candidates:
            found = "found {} ({})".format(
                len(candidates), ", ".join(p.name for p in candidates)
            )
        else:
            found = "found none"
        super().__init__(
            "Expected exactly one {} file in {}, {}. "
            "Specify the cartridge explicitly.".format(suffix, directory, found)
        )


@dataclass
class PartFiles:
    """Part files found in a directory, keyed by file stem.

    RULES:
    - segments: stem -> path of every SEGMENT_SUFFIX file
    - resources: stem -> path of every RESOURCE_SUFFIX file
    - Both dicts iterate in file-name order
    """

    segments: dict[str, Path] = field(default_factory=dict)
    resources: dict[str, Path] = field(default_factory=dict)

    def all_paths(self) -> list[Path]:
        return list(self.segments.values()) + list(self.resources.values())


def _list_files(directory: Path, suffix: str) -> list[Path]:
    return sorted(
        (p for p in directory.iterdir() if p.is_file() and p.name.endswith(suffix)),
        key=lambda p: p.name,
    )


def discover_parts(directory: str | Path) -> PartFiles:
    """List the segment and resource part files in ``directory``.

    Raises:
        FileNotFoundError: If the directory does not exist.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError("Part directory not found: {}".format(directory))

    parts = PartFiles()
    for path in _list_files(directory, SEGMENT_SUFFIX):
        stem = path.name[:-len(SEGMENT_SUFFIX)]
        if stem:
            parts.segments[stem] = path
    for path in _list_files(directory, RESOURCE_SUFFIX):
        stem = path.name[:-len(RESOURCE_SUFFIX)]
        if stem:
            parts.resources[stem] = path

    logger.debug(
        "Discovered %d segment(s) and %d resource(s) in %s",
        len(parts.segments), len(parts.resources), directory,
    )
    return parts


def resolve_default_cartridge(directory: str | Path) -> Path:
    """Return the only cartridge file in ``directory``.

    Raises:
        AmbiguousDefaultError: If there are zero or several candidates.
    """
    directory = Path(directory)
    candidates = _list_files(directory, CARTRIDGE_SUFFIX) if directory.is_dir() else []
    if len(candidates) != 1:
        raise AmbiguousDefaultError(directory, CARTRIDGE_SUFFIX, candidates)
    return candidates[0]


def purge_parts(directory: str | Path) -> list[Path]:
    """Delete every part file and the manifest in ``directory``.

    Returns:
        The paths that were removed.
    """
    directory = Path(directory)
    if not directory.is_dir():
        return []

    removed = discover_parts(directory).all_paths()
    manifest = manifest_path(directory)
    if manifest.is_file():
        removed.append(manifest)

    for path in removed:
        path.unlink()
        logger.debug("Removed %s", path)

    logger.info("Purged %d file(s) from %s", len(removed), directory)
    return removed
