#!/usr/bin/env python3
"""Allow running the plugin with `python -m helm_oss`."""

import sys

from .main import main

if __name__ == "__main__":
    sys.exit(main())
