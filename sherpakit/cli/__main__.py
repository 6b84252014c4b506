"""
Entry point for running SherpaKit CLI as a module.

Usage: python -m sherpakit.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
