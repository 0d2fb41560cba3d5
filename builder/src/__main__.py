"""Run the publish tool: ``python -m builder.src``."""

import sys

from builder.src.cli import main

if __name__ == "__main__":
    sys.exit(main())
