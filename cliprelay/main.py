#!/usr/bin/env python3
"""
Main entry point for the cliprelay CLI.
This delegates to the UI layer in cliprelay.ui.cli to keep the
console script mapping stable.
"""

from cliprelay.ui.cli import run as cliprelay

if __name__ == "__main__":
    cliprelay()
