"""Module entry point: ``python -m vmdriver``."""

import sys

from vmdriver import cli

if __name__ == "__main__":
    sys.exit(cli.main())
