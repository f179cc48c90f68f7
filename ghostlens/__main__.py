#!/usr/bin/env python3
"""
Entry point for python -m ghostlens execution.

This module enables running GhostLens as a Python module:
    python3 -m ghostlens
    python3 -m ghostlens --visual-ask
    python3 -m ghostlens --info

The actual CLI logic is in ghostlens.cli module.
"""

from ghostlens.cli import main
import sys

if __name__ == "__main__":
    sys.exit(main())
