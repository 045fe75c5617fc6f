"""
Run the headless simulation.

Usage:
    python -m outbreak.interface --country Brazil --seconds 120
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
