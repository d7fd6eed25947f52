"""Entry point for `python -m sqliteplus`."""
import sys

from sqliteplus.main import main

if __name__ == "__main__":
    sys.exit(main())
