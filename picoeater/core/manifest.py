"""Order and version sidecar persisted next to the part files.

WHY: Individual part files carry no absolute position and the header's
version token lives in no part file at all. A dump records both in a
small JSON manifest so a later build can reproduce the original
arrangement instead of falling back to naming conventions.

HOW: write_manifest() serializes a Manifest in one write. read_manifest()
loads it back, validating the document against manifest_schema.json
with jsonschema before trusting any of its fields.

RULES:
- The manifest is optional; a missing file reads as None
- Every key is optional; a missing list means "no record", not "empty"
- Invalid JSON or a schema violation raises ManifestError
- Written with sorted keys and a trailing newline so diffs stay stable
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import jsonschema

from picoeater.config import MANIFEST_FILENAME
from picoeater.core.model import Manifest, OrderRecord

logger = logging.getLogger(__name__)

MANIFEST_FORMAT = 1

_SCHEMA_PATH = Path(__file__).resolve().parent / "manifest_schema.json"


def _load_schema() -> dict[str, Any]:
    """Load the manifest JSON schema from disk.

    Cached at module level after first call to avoid repeated I/O.
    """
    with open(_SCHEMA_PATH, encoding="utf-8") as f:
        return json.load(f)


_CACHED_SCHEMA: dict[str, Any] | None = None


def _get_schema() -> dict[str, Any]:
    global _CACHED_SCHEMA
    if _CACHED_SCHEMA is None:
        _CACHED_SCHEMA = _load_schema()
    return _CACHED_SCHEMA


class ManifestError(ValueError):
    """Raised when a manifest exists but cannot be used.

    WHY: A corrupt sidecar must stop a build rather than silently reorder
    the cartridge, and callers need to tell it apart from a malformed
    cartridge.

    RULES:
    - path is the offending manifest file
    - The message names the file and the underlying problem
    """

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__("Invalid manifest {}: {}".format(path, message))


def manifest_path(directory: str | Path) -> Path:
    return Path(directory) / MANIFEST_FILENAME


def manifest_to_dict(manifest: Manifest) -> dict[str, Any]:
    data: dict[str, Any] = {"format": MANIFEST_FORMAT}
    if manifest.version is not None:
        data["version"] = manifest.version
    if manifest.order.segments is not None:
        data["segments"] = list(manifest.order.segments)
    if manifest.order.resources is not None:
        data["resources"] = list(manifest.order.resources)
    return data


def manifest_from_dict(data: dict[str, Any]) -> Manifest:
    """Build a Manifest from an already validated document."""
    segments = data.get("segments")
    resources = data.get("resources")
    return Manifest(
        order=OrderRecord(
            segments=list(segments) if segments is not None else None,
            resources=list(resources) if resources is not None else None,
        ),
        version=data.get("version"),
    )


def write_manifest(directory: str | Path, manifest: Manifest) -> Path:
    """Write the manifest into ``directory`` and return its path."""
    path = manifest_path(directory)
    data = manifest_to_dict(manifest)
    jsonschema.validate(instance=data, schema=_get_schema())
    path.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    logger.debug("Wrote manifest %s", path)
    return path


def read_manifest(directory: str | Path) -> Manifest | None:
    """Read the manifest from ``directory``.

    Returns:
        The Manifest, or None if the directory has no manifest file.

    Raises:
        ManifestError: If the file is not valid JSON or fails the schema.
    """
    path = manifest_path(directory)
    if not path.is_file():
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ManifestError(path, "not valid JSON ({})".format(e)) from e

    try:
        jsonschema.validate(instance=data, schema=_get_schema())
    except jsonschema.ValidationError as e:
        raise ManifestError(path, e.message) from e

    logger.debug("Read manifest %s", path)
    return manifest_from_dict(data)
