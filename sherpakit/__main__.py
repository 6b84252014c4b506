"""Entry point for ``python -m sherpakit``."""

from sherpakit.cli.parser import main

if __name__ == "__main__":
    main()
