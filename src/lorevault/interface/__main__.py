"""
Run the LoreVault CLI.

Usage:
    python -m lorevault.interface --book world=world.json search "sunreach"
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
