#!/usr/bin/env python3
"""
Main entry point for skatos
"""

# Verbosity flags are parsed/configured inside core._create_argument_parser()/main.
# This CLI wrapper is responsible for exit codes.
import logging
import sys
from typing import Optional, Sequence

from .constants import EXIT_FAILURE
from .core import main as skatos_main
from .exceptions import SkatosError


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point for skatos."""
    try:
        skatos_main(argv)
    except SkatosError as e:
        # Already reported by core; map the error kind to its exit code
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception as e:
        logging.getLogger(__name__).error("Unexpected error: %s", e)
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
