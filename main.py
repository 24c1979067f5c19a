"""quorum entry point for running from a checkout

usage:
    python main.py --contract path/to/Contract.sol
    python main.py --address 0x... --chain ethereum
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

from quorum.cli import main

if __name__ == "__main__":
    sys.exit(main())
