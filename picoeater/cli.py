"""Command-line interface for picoeater.

WHY: Users need a single command to dump a cartridge into part files
before editing and to build it back afterwards. The CLI wires together
default-file resolution, the optional purge of an earlier dump, and the
split/join pipelines behind two subcommands.

HOW: Uses argparse with ``dump`` and ``build`` subcommands sharing the
cartridge argument and ``--dir``. The cartridge defaults to the only
*.p8 in the working directory. Status messages go to stderr; typed
errors from the core are reported as "Error: ..." with a non-zero
exit status.

RULES:
- Positional argument: cartridge path (optional, resolved by default)
- --dir: part directory (default: PICOEATER_PARTS_DIR, else CWD)
- dump --purge removes earlier part files first, after confirmation
  unless --yes is given
- Status output goes to stderr (not stdout)
- Exit codes: 0 success, 1 handled error, 2 no unambiguous default
  cartridge, 130 cancelled
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from picoeater import __version__
from picoeater.config import DEFAULT_PARTS_DIR
from picoeater.core.discovery import (
    AmbiguousDefaultError,
    discover_parts,
    purge_parts,
    resolve_default_cartridge,
)
from picoeater.core.joiner import join_cartridge
from picoeater.core.splitter import split_cartridge


def _status(msg: str) -> None:
    """Print a status message to stderr.

    WHY: Status output must not pollute stdout so the CLI can be piped.
    """
    print(msg, file=sys.stderr, flush=True)


def _confirm(prompt: str) -> bool:
    """Ask a yes/no question on the terminal; anything but yes is no."""
    try:
        answer = input("{} [y/N] ".format(prompt))
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _resolve_paths(args: argparse.Namespace) -> Tuple[Path, Path]:
    """Resolve the cartridge and part directory from the arguments.

    Raises:
        AmbiguousDefaultError: If no cartridge was given and the working
            directory does not hold exactly one.
    """
    if args.cartridge:
        cart_path = Path(args.cartridge)
    else:
        cart_path = resolve_default_cartridge(Path.cwd())
        _status("Using cartridge {}".format(cart_path.name))

    parts_dir = Path(args.dir or DEFAULT_PARTS_DIR or Path.cwd())
    return cart_path.resolve(), parts_dir.resolve()


def _run_dump(args: argparse.Namespace) -> None:
    cart_path, parts_dir = _resolve_paths(args)
    if not cart_path.is_file():
        raise FileNotFoundError("Cartridge not found: {}".format(cart_path))

    if args.purge and parts_dir.is_dir():
        existing = discover_parts(parts_dir).all_paths()
        if existing:
            if not args.yes and not _confirm(
                "Delete {} existing part file(s) in {}?".format(len(existing), parts_dir)
            ):
                _status("Purge cancelled, nothing was dumped.")
                sys.exit(1)
            removed = purge_parts(parts_dir)
            _status("Removed {} file(s)".format(len(removed)))

    _status("Dumping {} into {}...".format(cart_path.name, parts_dir))
    result = split_cartridge(cart_path, parts_dir, keep_duplicates=args.keep_duplicates)

    for segment in result.segments:
        _status("  Segment {}: {}".format(segment.index, segment.path.name))
    for block in result.resources:
        _status("  Resource {}: {}".format(block.kind, block.path.name))

    written = set(result.paths)
    stale = [p for p in discover_parts(parts_dir).all_paths() if p not in written]
    if stale:
        _status("Warning: {} part file(s) not from this cartridge will be "
                "included in the next build (use --purge to remove them):".format(len(stale)))
        for path in stale:
            _status("  {}".format(path.name))

    _status("Done! Wrote {} part file(s).".format(len(written)))


def _run_build(args: argparse.Namespace) -> None:
    cart_path, parts_dir = _resolve_paths(args)

    _status("Building {} from {}...".format(cart_path.name, parts_dir))
    plan = join_cartridge(parts_dir, cart_path)

    for name in plan.skipped:
        _status("  Skipped missing part: {}".format(name))
    _status("Done! {} segment(s), {} resource(s).".format(
        len(plan.segments), len(plan.resources)
    ))


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable without running a dump or build.
    """
    parser = argparse.ArgumentParser(
        prog="picoeater",
        description="Split a PICO-8 cartridge into per-tab Lua files and "
                    "resource files, and build it back.",
    )
    parser.add_argument("--version", action="version", version="%(prog)s " + __version__)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "cartridge",
        nargs="?",
        default=None,
        help="The combined .p8 file (default: the only .p8 in the current directory).",
    )
    common.add_argument(
        "-d", "--dir",
        default=None,
        help="Directory for the part files (default: current directory).",
    )
    common.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log every file that is read or written.",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    dump = subparsers.add_parser(
        "dump", parents=[common], help="Split the cartridge into part files.",
    )
    dump.add_argument(
        "--purge",
        action="store_true",
        help="Delete existing part files in the directory before dumping.",
    )
    dump.add_argument(
        "-y", "--yes",
        action="store_true",
        help="Do not ask for confirmation before purging.",
    )
    dump.add_argument(
        "--keep-duplicates",
        action="store_true",
        help="Keep every block of a repeated resource kind instead of the last one.",
    )
    dump.set_defaults(handler=_run_dump)

    build = subparsers.add_parser(
        "build", parents=[common], help="Join the part files into the cartridge.",
    )
    build.set_defaults(handler=_run_build)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        args.handler(args)
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    except AmbiguousDefaultError as e:
        # A usage problem, reported like argparse reports one
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(2)
    except (ValueError, OSError) as e:
        # MalformedCartridgeError and ManifestError are ValueErrors
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
