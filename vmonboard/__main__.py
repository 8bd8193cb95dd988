"""Module entry point for ``python -m vmonboard``."""

from __future__ import annotations

import sys

from vmonboard.cli.app import main


def run() -> int:
    """Execute the CLI entry point."""
    return main(sys.argv[1:])


if __name__ == "__main__":  # pragma: no cover - manual execution only
    raise SystemExit(run())
