"""Configuration constants, part-file naming, and .env loading.

WHY: Centralizes every configurable value (file suffixes, the sidecar
manifest name, the default cartridge version) so they are easy to find,
update, and override. Nothing here is buried in the splitter or joiner.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level strings and ints. Values that users plausibly want to
change per project read an environment variable first.

RULES:
- Segment parts use SEGMENT_SUFFIX, resource parts use RESOURCE_SUFFIX;
  the two suffixes must differ so every part file has exactly one role
- MANIFEST_FILENAME must not end in either part suffix
- DEFAULT_VERSION is only used when no version record exists
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the command is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# File naming
# ---------------------------------------------------------------------------

CARTRIDGE_SUFFIX = ".p8"
"""Extension of composite cartridge files."""

SEGMENT_SUFFIX = ".lua"
"""Extension of per-segment code files."""

RESOURCE_SUFFIX = ".p8res"
"""Extension of per-kind resource block files."""

MANIFEST_FILENAME = "picoeater.json"
"""Sidecar holding the order and version records of the last dump."""

MAX_STEM_LENGTH = 64
"""Segment display names longer than this are truncated in file names."""

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_VERSION = os.getenv("PICOEATER_DEFAULT_VERSION", "41").strip() or "41"
DEFAULT_PARTS_DIR = os.getenv("PICOEATER_PARTS_DIR", "").strip() or None
