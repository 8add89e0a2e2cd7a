#!/usr/bin/env python3
"""
CCI Divergence Scanner

Scans a watchlist of symbols for CCI divergences using Polygon.io bars.
See `python main.py --help` for options.
"""

import sys
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from cci_divergence.cli import main

if __name__ == "__main__":
    sys.exit(main())
