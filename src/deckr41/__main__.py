"""Entry point for `python -m deckr41`."""

import sys

from deckr41.cli import main

if __name__ == "__main__":
    sys.exit(main())
