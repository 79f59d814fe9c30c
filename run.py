"""Launcher for running pirouette from a source checkout.

Usage:
    python run.py
    python run.py --config config/pirouette.example.toml --dry-run
"""

import sys

from pirouette.cli import main

if __name__ == "__main__":
    sys.exit(main())
