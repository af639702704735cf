"""Entry point.

Supports: python -m ue_build_runner
"""

import sys

from .app import main

if __name__ == "__main__":
    sys.exit(main())
