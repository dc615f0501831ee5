"""Entry point for running the canvas as a module: python -m infiniteboard"""

import sys
from .ui import main

if __name__ == "__main__":
    sys.exit(main())
