#!/usr/bin/env python3
"""
Entry point for running the indexer as a module.
Usage: python -m mail_indexer [args]
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
