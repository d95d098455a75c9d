"""CLI entry point for reelforge.cli module.

Enables execution via: python -m reelforge.cli "PROMPT"
"""

from reelforge.cli.generate import main

if __name__ == "__main__":
    raise SystemExit(main())
