"""Main entry point when executing pinsync as a package.

This allows running the package using python -m pinsync.
"""

from pinsync.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
