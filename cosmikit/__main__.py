"""
Module entrypoint for the Cosmikit CLI.

This file exists so that `python -m cosmikit ...` works even when the
console-script wrapper is not installed. It delegates to cosmikit.cli.
"""

from __future__ import annotations

from cosmikit.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
