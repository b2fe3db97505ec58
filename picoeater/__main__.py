"""Package entry point for ``python -m picoeater``.

WHY: Users can run the tool as ``python -m picoeater dump game.p8``
without relying on the installed console script.

HOW: Delegates to the CLI's main() function.
"""

from picoeater.cli import main

if __name__ == "__main__":
    main()
