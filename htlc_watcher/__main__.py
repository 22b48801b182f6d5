"""
Entry point for running the watcher as a module.

Usage:
    python -m htlc_watcher
"""

from htlc_watcher.cli import main

if __name__ == "__main__":
    main()
