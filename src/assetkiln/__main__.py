"""Package entry point.

Enables running the build with:

    python -m assetkiln [--watch]
"""

from __future__ import annotations

import sys

from assetkiln.cli import main

if __name__ == "__main__":
    sys.exit(main())
