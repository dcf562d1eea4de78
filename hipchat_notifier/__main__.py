#!/usr/bin/env python3
"""
Entry point for `python -m hipchat_notifier`
"""

import sys
from typing import NoReturn


def main() -> NoReturn:
    """
    Main entry point for the hipchat-notifier command line.

    Raises:
        SystemExit: Always exits after CLI execution or error handling
    """
    try:
        from .cli import cli
        cli()
    except KeyboardInterrupt:
        print("\nOperation cancelled by user.", file=sys.stderr)
        sys.exit(130)  # Standard exit code for SIGINT
    sys.exit(0)


if __name__ == "__main__":
    main()
