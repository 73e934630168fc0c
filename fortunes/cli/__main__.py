"""
Fortunes CLI entry point.

Usage:
    python -m fortunes.cli [-acDefilosut] [-m pattern] [[N%] location ...]
"""

import sys
from .main import main

if __name__ == "__main__":
    sys.exit(main())
