"""
CLI entry point for the SCED Bulk Verifier.

Logging is configured before the .env files are loaded, so problems while
loading them are reported with the same format as the commands' output.
"""

import sys
import logging


def main():
    """Main CLI entry point with full setup."""
    verbose = '-v' in sys.argv or '--verbose' in sys.argv
    quiet = '-q' in sys.argv or '--quiet' in sys.argv

    from .utils import setup_logging
    setup_logging(verbose=verbose, quiet=quiet)

    from ..core.utils.environment import setup_environment
    try:
        setup_environment(verbose=verbose)
    except OSError as e:
        logging.warning(f"Could not load .env file: {e}. Relying on system environment variables.")

    try:
        from .cli import cli
        cli()
    except KeyboardInterrupt:
        logging.info("Interrupted. Polling stopped; the batch keeps running on the server.")
        sys.exit(130)


if __name__ == '__main__':
    main()
