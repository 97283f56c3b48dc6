"""
Main entry point for running as module.

Usage: python -m centrality_engine [command] [options]
"""

import sys

from .cli import main

if __name__ == '__main__':
    sys.exit(main())
