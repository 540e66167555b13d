"""
Entry point for running MindSplit as a module.

Usage:
    python3 -m mindsplit notes.txt --streams 3
"""

import sys

from .cli import main

if __name__ == '__main__':
    sys.exit(main())
