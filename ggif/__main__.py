"""Entry point for ggif.

Usage:
    python -m ggif [VIDEO]          Convert VIDEO (or the newest video in --src)
    python -m ggif --watch          Convert every new video dropped into --src
"""

import sys

from ggif.cli import main

if __name__ == "__main__":
    sys.exit(main())
