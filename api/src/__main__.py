"""Run the catalog API: ``python -m api.src [--artifacts DIR]``."""

import sys

from api.src.hosting import main

if __name__ == "__main__":
    sys.exit(main())
